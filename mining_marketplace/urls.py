"""
URL configuration for mining_marketplace project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import (
    TokenVerifyView,
    TokenBlacklistView,
)
from marketplace.views import (
    EmailTokenObtainPairView,
    ThrottledTokenRefreshView,
    UserRegistrationView,
    LoginView,
    CurrentUserView,
    UserListView,
    UserDetailView,
    BusinessDetailsView,
    PreferencesView,
    UserVerificationView,
    MineListCreateView,
    MineDetailView,
    MineAttachmentUploadView,
    MineAttachmentMetadataView,
    MineMediaView,
    MinesByOwnerView,
    MineSearchView,
    MineralListCreateView,
    MineralDetailView,
    MineralStatsView,
    MineralsWithinView,
    MineralDocumentUploadView,
    HeavyMachineListCreateView,
    HeavyMachineDetailView,
    MachineRentView,
    MachineReturnView,
    MachineSellView,
    MachineMaintenanceView,
    MachineStatusView,
    OfferListCreateView,
    OfferDetailView,
    OfferAcceptView,
    OfferRejectView,
    MyOffersView,
    MineOffersView,
    MineOwnerOffersView,
    InvestorOffersView,
    MessageListCreateView,
    ConversationView,
    MineMessagesView,
    MessageSeenView,
    UserAnalyticsView,
    AdminAnalyticsView,
    PaymentIntentView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/auth/me/', CurrentUserView.as_view(), name='current_user'),

    # JWT Authentication endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', ThrottledTokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),
    path('api/token/blacklist/', TokenBlacklistView.as_view(), name='token_blacklist'),

    # User endpoints
    path('api/users/', UserListView.as_view(), name='user_list'),
    path('api/users/<int:pk>/', UserDetailView.as_view(), name='user_detail'),
    path('api/users/<int:pk>/business-details/', BusinessDetailsView.as_view(), name='user_business_details'),
    path('api/users/<int:pk>/preferences/', PreferencesView.as_view(), name='user_preferences'),
    path('api/users/<int:pk>/verify/', UserVerificationView.as_view(), name='user_verify'),

    # Mine endpoints
    path('api/mines/', MineListCreateView.as_view(), name='mine_list'),
    path('api/mines/owner/<int:owner_id>/', MinesByOwnerView.as_view(), name='mines_by_owner'),
    path('api/mines/search/<str:query>/', MineSearchView.as_view(), name='mine_search'),
    path('api/mines/<int:pk>/', MineDetailView.as_view(), name='mine_detail'),
    path('api/mines/<int:pk>/attachment/', MineAttachmentUploadView.as_view(), name='mine_attachment_upload'),
    path('api/mines/<int:pk>/attachments/', MineAttachmentMetadataView.as_view(), name='mine_attachments'),
    path('api/mines/<int:pk>/media/', MineMediaView.as_view(), name='mine_media'),

    # Mineral endpoints
    path('api/minerals/', MineralListCreateView.as_view(), name='mineral_list'),
    path('api/minerals/stats/', MineralStatsView.as_view(), name='mineral_stats'),
    path(
        'api/minerals/within/<str:distance>/center/<str:latlng>/unit/<str:unit>/',
        MineralsWithinView.as_view(),
        name='minerals_within',
    ),
    path('api/minerals/<int:pk>/', MineralDetailView.as_view(), name='mineral_detail'),
    path('api/minerals/<int:pk>/documents/', MineralDocumentUploadView.as_view(), name='mineral_documents'),

    # Heavy machine endpoints
    path('api/heavy-machines/', HeavyMachineListCreateView.as_view(), name='machine_list'),
    path('api/heavy-machines/<int:pk>/', HeavyMachineDetailView.as_view(), name='machine_detail'),
    path('api/heavy-machines/<int:pk>/rent/', MachineRentView.as_view(), name='machine_rent'),
    path(
        'api/heavy-machines/<int:pk>/return/<int:rental_id>/',
        MachineReturnView.as_view(),
        name='machine_return',
    ),
    path('api/heavy-machines/<int:pk>/sell/', MachineSellView.as_view(), name='machine_sell'),
    path('api/heavy-machines/<int:pk>/maintenance/', MachineMaintenanceView.as_view(), name='machine_maintenance'),
    path('api/heavy-machines/<int:pk>/status/', MachineStatusView.as_view(), name='machine_status'),

    # Offer endpoints
    path('api/offers/', OfferListCreateView.as_view(), name='offer_list'),
    path('api/offers/my/', MyOffersView.as_view(), name='my_offers'),
    path('api/offers/mine/<int:mine_id>/', MineOffersView.as_view(), name='mine_offers'),
    path('api/offers/mine-owner/<int:owner_id>/', MineOwnerOffersView.as_view(), name='mine_owner_offers'),
    path('api/offers/investor/<int:investor_id>/', InvestorOffersView.as_view(), name='investor_offers'),
    path('api/offers/<int:pk>/', OfferDetailView.as_view(), name='offer_detail'),
    path('api/offers/<int:pk>/accept/', OfferAcceptView.as_view(), name='offer_accept'),
    path('api/offers/<int:pk>/reject/', OfferRejectView.as_view(), name='offer_reject'),

    # Message endpoints
    path('api/messages/', MessageListCreateView.as_view(), name='message_list'),
    path('api/messages/thread/<int:user_id>/', ConversationView.as_view(), name='message_thread'),
    path('api/messages/mine/<int:mine_id>/', MineMessagesView.as_view(), name='mine_messages'),
    path('api/messages/<int:pk>/seen/', MessageSeenView.as_view(), name='message_seen'),

    # Analytics endpoints
    path('api/analytics/user/', UserAnalyticsView.as_view(), name='user_analytics'),
    path('api/analytics/admin/', AdminAnalyticsView.as_view(), name='admin_analytics'),

    # Payment endpoints
    path('api/payments/create-intent/', PaymentIntentView.as_view(), name='payment_intent'),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
