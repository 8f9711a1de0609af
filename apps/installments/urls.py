from rest_framework.routers import DefaultRouter

from apps.installments.views import InstallmentViewSet

router = DefaultRouter()
router.register("installments", InstallmentViewSet, basename="installment")

urlpatterns = router.urls
