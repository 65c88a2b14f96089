"""
Django admin configuration for the Mining Marketplace.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import (
    HeavyMachine,
    MachinePurchase,
    MachineRental,
    MaintenanceRecord,
    Message,
    Mine,
    MineAttachment,
    Mineral,
    MineralAttachment,
    Offer,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Custom admin interface for User model.

    Extends Django's UserAdmin with the marketplace role and profile sections.
    """

    list_display = [
        'email',
        'first_name',
        'last_name',
        'role',
        'is_verified',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_verified',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'first_name',
        'last_name',
        'contact_number',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Personal Info'), {
            'fields': (
                'first_name',
                'last_name',
                'email',
                'contact_number',
            )
        }),
        (_('Role & Verification'), {
            'fields': ('role', 'is_verified')
        }),
        (_('Profile'), {
            'fields': ('business_details', 'preferences'),
            'classes': ('collapse',),
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'password1',
                'password2',
                'role',
                'contact_number',
            ),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields
        return []


# ============================================================================
# Mines and offers
# ============================================================================

class MineAttachmentInline(admin.TabularInline):
    model = MineAttachment
    extra = 0
    fields = ['filename', 'file', 'url', 'mimetype', 'size', 'uploaded_at']
    readonly_fields = ['uploaded_at']


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    fields = ['investor', 'amount', 'status', 'created_at']
    readonly_fields = ['created_at']
    show_change_link = True


@admin.register(Mine)
class MineAdmin(admin.ModelAdmin):
    """Admin interface for Mine listings."""

    list_display = ['name', 'owner', 'commodity_type', 'status', 'price', 'created_at']
    list_filter = ['status', 'commodity_type', 'created_at']
    search_fields = ['name', 'location', 'commodity_type', 'owner__email']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25
    inlines = [MineAttachmentInline, OfferInline]

    fieldsets = (
        (None, {
            'fields': ('owner', 'name', 'location', 'commodity_type', 'status', 'price', 'description')
        }),
        (_('Sections'), {
            'fields': Mine.SECTION_FIELDS,
            'classes': ('collapse',),
        }),
        (_('Media & Documents'), {
            'fields': ('media', 'documents'),
            'classes': ('collapse',),
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    """Admin interface for investment offers."""

    list_display = ['id', 'mine', 'investor', 'amount', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['mine__name', 'investor__email', 'message']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25


# ============================================================================
# Minerals
# ============================================================================

class MineralAttachmentInline(admin.TabularInline):
    model = MineralAttachment
    extra = 0
    fields = ['filename', 'file', 'url', 'mimetype', 'size', 'uploaded_at']
    readonly_fields = ['uploaded_at']


@admin.register(Mineral)
class MineralAdmin(admin.ModelAdmin):
    list_display = ['name', 'mineral_type', 'price_per_unit', 'currency', 'available_quantity', 'is_active']
    list_filter = ['mineral_type', 'currency', 'is_active']
    search_fields = ['name', 'description', 'created_by__email']
    readonly_fields = ['created_at', 'last_updated_at']
    ordering = ['-created_at']
    list_per_page = 25
    inlines = [MineralAttachmentInline]


# ============================================================================
# Heavy machines
# ============================================================================

class MachineRentalInline(admin.TabularInline):
    model = MachineRental
    extra = 0
    fields = ['renter', 'start_date', 'end_date', 'price_per_day', 'status', 'returned_at']


class MachinePurchaseInline(admin.TabularInline):
    model = MachinePurchase
    extra = 0
    fields = ['buyer', 'price', 'date', 'notes']


class MaintenanceRecordInline(admin.TabularInline):
    model = MaintenanceRecord
    extra = 0
    fields = ['title', 'cost', 'performed_at', 'performed_by']


@admin.register(HeavyMachine)
class HeavyMachineAdmin(admin.ModelAdmin):
    """Admin interface for heavy machines with their rental, sale and maintenance history."""

    list_display = ['name', 'category', 'brand', 'model_name', 'year', 'owner', 'status', 'is_active']
    list_filter = ['category', 'status', 'is_active', 'country']
    search_fields = ['name', 'brand', 'model_name', 'serial_number', 'owner__email']
    readonly_fields = ['created_at', 'last_updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25
    inlines = [MachineRentalInline, MachinePurchaseInline, MaintenanceRecordInline]


# ============================================================================
# Messages
# ============================================================================

@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'sender', 'receiver', 'mine', 'seen', 'created_at']
    list_filter = ['seen', 'created_at']
    search_fields = ['sender__email', 'receiver__email', 'content']
    readonly_fields = ['created_at', 'updated_at']
    ordering = ['-created_at']
    list_per_page = 50
