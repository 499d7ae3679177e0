# apps/expenses/admin.py
from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin

from .models import Expense


@admin.register(Expense)
class ExpenseAdmin(SimpleHistoryAdmin):
    list_display = [
        'expense_number', 'title', 'category', 'amount_display', 'expense_date',
        'approval_status', 'payment_status', 'location_name',
    ]
    list_filter = ['approval_status', 'payment_status', 'category', 'expense_date']
    search_fields = ['expense_number', 'title', 'vendor_name', 'description']
    readonly_fields = ['expense_number', 'approved_by', 'approved_at', 'created_at', 'updated_at']
    raw_id_fields = ['shop', 'warehouse', 'created_by']
    date_hierarchy = 'expense_date'

    fieldsets = [
        (None, {
            'fields': ['expense_number', 'title', 'description', 'category', 'subcategory']
        }),
        ('Amount', {
            'fields': ['amount', 'currency', 'expense_date', 'due_date', 'vendor_name']
        }),
        ('Location', {
            'fields': ['shop', 'warehouse']
        }),
        ('Approval & Payment', {
            'fields': [
                'approval_status', 'approved_by', 'approved_at',
                'payment_status', 'payment_method', 'receipt_url',
            ]
        }),
        ('Notes', {
            'fields': ['notes', 'created_by', 'created_at', 'updated_at'],
            'classes': ['collapse']
        }),
    ]

    def amount_display(self, obj):
        return f"{obj.currency} {obj.amount:,.2f}"
    amount_display.short_description = 'Amount'
