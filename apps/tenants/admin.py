# apps/tenants/admin.py
"""
Django admin configuration for tenant models.
"""
from django.contrib import admin
from .models import (
    Tenant, TenantSequence, SubscriptionPlan, SystemFeature, TenantFeature,
    TenantBillingHistory, SystemConfiguration,
)


class TenantSequenceInline(admin.TabularInline):
    """Inline editor for TenantSequence."""
    model = TenantSequence
    extra = 0
    fields = ['sequence_type', 'prefix', 'next_value', 'padding']
    readonly_fields = ['sequence_type']  # Don't allow changing sequence type


class TenantFeatureInline(admin.TabularInline):
    model = TenantFeature
    extra = 0
    fields = ['system_feature', 'is_enabled', 'custom_name', 'is_pinned', 'is_visible_dashboard']
    raw_id_fields = ['system_feature']


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    """Admin interface for Tenant model."""
    list_display = [
        'company_name', 'tenant_code', 'subscription_plan', 'status',
        'is_trial', 'is_default', 'created_at'
    ]
    list_filter = ['status', 'is_trial', 'is_default', 'billing_cycle']
    search_fields = ['company_name', 'tenant_code', 'email']
    readonly_fields = ['created_at', 'updated_at', 'last_login_at']

    fieldsets = [
        (None, {
            'fields': ['company_name', 'tenant_code', 'business_type', 'industry', 'company_size']
        }),
        ('Contact', {
            'fields': [
                'contact_person', ('email', 'phone_number'), 'website_url',
                'address', ('city', 'state', 'postal_code'), 'country',
            ],
            'classes': ['collapse']
        }),
        ('Subscription', {
            'fields': [
                'subscription_plan', 'billing_cycle', 'subscription_amount',
                ('subscription_start_date', 'subscription_end_date'),
                ('is_trial', 'trial_days_remaining'),
            ]
        }),
        ('Limits', {
            'fields': [('max_users', 'max_products'), ('max_warehouses', 'max_shops'), 'storage_limit_gb']
        }),
        ('Status', {
            'fields': ['status', 'is_default', 'onboarding_completed']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at', 'last_login_at'],
            'classes': ['collapse']
        }),
    ]

    inlines = [TenantSequenceInline, TenantFeatureInline]

    def save_model(self, request, obj, form, change):
        """Ensure only one tenant can be default."""
        if obj.is_default:
            Tenant.objects.filter(is_default=True).exclude(pk=obj.pk).update(is_default=False)
        super().save_model(request, obj, form, change)


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    list_display = [
        'display_name', 'plan_name', 'price_monthly', 'price_yearly',
        'yearly_discount_display', 'is_active', 'sort_order'
    ]
    list_filter = ['is_active']
    search_fields = ['plan_name', 'display_name']

    def yearly_discount_display(self, obj):
        return f"{obj.yearly_discount}%"
    yearly_discount_display.short_description = 'Yearly Discount'


@admin.register(SystemFeature)
class SystemFeatureAdmin(admin.ModelAdmin):
    list_display = ['feature_name', 'feature_key', 'category', 'is_premium', 'is_active', 'sort_order']
    list_filter = ['category', 'is_premium', 'is_active']
    search_fields = ['feature_key', 'feature_name']


@admin.register(TenantBillingHistory)
class TenantBillingHistoryAdmin(admin.ModelAdmin):
    list_display = [
        'invoice_number', 'tenant', 'invoice_date', 'due_date',
        'total_amount', 'payment_status'
    ]
    list_filter = ['payment_status', 'invoice_date']
    search_fields = ['invoice_number', 'tenant__company_name', 'payment_reference']
    raw_id_fields = ['tenant']
    date_hierarchy = 'invoice_date'


@admin.register(SystemConfiguration)
class SystemConfigurationAdmin(admin.ModelAdmin):
    list_display = ['config_key', 'config_group', 'tenant', 'data_type', 'is_public']
    list_filter = ['config_group', 'data_type', 'is_public']
    search_fields = ['config_key', 'description']
    raw_id_fields = ['tenant']
