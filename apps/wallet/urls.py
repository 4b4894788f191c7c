from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'wallet'

router = DefaultRouter()
router.register(r'items', views.WalletItemViewSet, basename='wallet-item')

urlpatterns = [
    # Wallet item routes
    # GET    /api/wallet/items/                           - List wallet items
    # GET    /api/wallet/items/{id}/                      - Wallet item detail
    # GET    /api/wallet/items/{id}/qr/                   - QR payload + PNG
    # GET    /api/wallet/items/{id}/pending_confirmation/ - Open approval request
    # POST   /api/wallet/items/{id}/confirm/              - Approve
    # POST   /api/wallet/items/{id}/deny/                 - Decline
    # POST   /api/wallet/items/{id}/redeem/               - Self-redeem

    path('limits/', views.wallet_limits, name='limits'),
    path('redemptions/', views.redemption_history, name='redemptions'),

    # Vendor scanner
    path('vendor/scan/', views.vendor_scan, name='vendor-scan'),
    path('vendor/items/<uuid:wallet_item_id>/status/', views.vendor_item_status, name='vendor-item-status'),
    path('vendor/redemptions/', views.vendor_redemptions, name='vendor-redemptions'),

    path('', include(router.urls)),
]
