from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.zakat.views import ZakatCalculatorView, ZakatTransactionViewSet

router = DefaultRouter()
router.register("zakat/transactions", ZakatTransactionViewSet, basename="zakat-transaction")

urlpatterns = [
    path("zakat/calculate/", ZakatCalculatorView.as_view(), name="zakat-calculate"),
    *router.urls,
]
