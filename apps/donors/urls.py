from rest_framework.routers import DefaultRouter

from apps.donors.views import DonorViewSet

router = DefaultRouter()
router.register("donors", DonorViewSet, basename="donor")

urlpatterns = router.urls
