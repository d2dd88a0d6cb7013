"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from api.v1 import construction_views as construction_api_views
from api.v1 import incentive_views as incentive_api_views

router = DefaultRouter()
router.register(r'incentive-tiers', incentive_api_views.IncentiveTierViewSet)
router.register(r'incentive-awards', incentive_api_views.IncentiveAwardViewSet)
router.register(r'budget-allocations', construction_api_views.BudgetAllocationViewSet)
router.register(r'construction-projects', construction_api_views.ConstructionProjectViewSet)

urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('', include(router.urls)),
]
