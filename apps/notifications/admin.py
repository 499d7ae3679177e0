# apps/notifications/admin.py
from django.contrib import admin

from .models import NoticeEvent


@admin.register(NoticeEvent)
class NoticeEventAdmin(admin.ModelAdmin):
    list_display = [
        'title', 'notice_type', 'priority', 'target_audience',
        'is_published', 'publish_date', 'expiry_date', 'status',
    ]
    list_filter = ['notice_type', 'priority', 'target_audience', 'is_published']
    search_fields = ['title', 'content']
    readonly_fields = ['created_at', 'updated_at']
    actions = ['publish_selected', 'unpublish_selected']

    def status(self, obj):
        return obj.status_label()

    @admin.action(description='Publish selected notices')
    def publish_selected(self, request, queryset):
        for notice in queryset:
            notice.publish()

    @admin.action(description='Unpublish selected notices')
    def unpublish_selected(self, request, queryset):
        for notice in queryset:
            notice.unpublish()
