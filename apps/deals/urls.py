from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'deals'

router = DefaultRouter()
router.register(r'', views.DealViewSet, basename='deal')

urlpatterns = [
    # GET    /api/deals/              - List deals
    # GET    /api/deals/{id}/         - Deal detail
    # POST   /api/deals/{id}/save/    - Save deal
    # DELETE /api/deals/{id}/save/    - Unsave deal
    # POST   /api/deals/{id}/claim/   - Claim into wallet
    path('', include(router.urls)),
]
