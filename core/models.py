import json
from datetime import timedelta

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Count
from django.utils import timezone


ACTION_LABELS = {
    'created': 'Created',
    'updated': 'Updated',
    'deleted': 'Deleted',
    'viewed': 'Viewed',
    'exported': 'Exported',
    'imported': 'Imported',
    'login': 'Logged In',
    'logout': 'Logged Out',
    'password_change': 'Password Changed',
    'settings_change': 'Settings Changed',
}

ACTION_ICONS = {
    'created': 'plus',
    'updated': 'pencil',
    'deleted': 'trash',
    'viewed': 'eye',
    'exported': 'download',
    'imported': 'upload',
    'login': 'login',
    'logout': 'logout',
    'password_change': 'key',
    'settings_change': 'cog',
}

ACTION_COLORS = {
    'created': 'green',
    'updated': 'blue',
    'deleted': 'red',
    'viewed': 'gray',
    'exported': 'purple',
    'imported': 'indigo',
    'login': 'green',
    'logout': 'orange',
    'password_change': 'yellow',
    'settings_change': 'blue',
}


def format_value(value):
    """Render a stored value for display."""
    if value is None:
        return '(null)'
    if value == '':
        return '(empty)'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, dict)):
        return json.dumps(value, cls=DjangoJSONEncoder)
    return str(value)


class AuditLogQuerySet(models.QuerySet):
    def for_tenant(self, tenant):
        return self.filter(tenant=tenant)

    def for_user(self, user):
        return self.filter(user=user)

    def for_table(self, table_name):
        return self.filter(table_name=table_name)

    def for_record(self, table_name, record_id):
        return self.filter(table_name=table_name, record_id=record_id)

    def for_object(self, instance):
        return self.filter(
            content_type=ContentType.objects.get_for_model(instance),
            record_id=instance.pk,
        )

    def by_action(self, action):
        return self.filter(action=action)

    def created(self):
        return self.by_action('created')

    def updated(self):
        return self.by_action('updated')

    def deleted(self):
        return self.by_action('deleted')

    def by_date_range(self, start, end):
        return self.filter(created_at__range=(start, end))

    def recent(self, hours=24):
        return self.filter(created_at__gte=timezone.now() - timedelta(hours=hours))

    def today(self):
        return self.filter(created_at__date=timezone.localdate())


class AuditLog(models.Model):
    """
    Append-only record of who did what to which row.

    Request metadata (IP address, user agent) and the acting user are always
    passed in by the caller; nothing is read from ambient request state.
    """
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_logs'
    )
    action = models.CharField(max_length=50)
    table_name = models.CharField(max_length=100, blank=True)
    record_id = models.PositiveBigIntegerField(null=True, blank=True)

    # Generic Foreign Key, set when the log concerns a model instance
    content_type = models.ForeignKey(ContentType, on_delete=models.SET_NULL, null=True, blank=True)
    content_object = GenericForeignKey('content_type', 'record_id')

    old_values = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)
    new_values = models.JSONField(encoder=DjangoJSONEncoder, null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['tenant', 'created_at']),
            models.Index(fields=['table_name', 'record_id']),
            models.Index(fields=['action']),
        ]

    def __str__(self):
        return self.description

    # ----- display -----

    @property
    def action_label(self):
        return ACTION_LABELS.get(self.action, self.action.replace('_', ' ').capitalize())

    @property
    def action_icon(self):
        return ACTION_ICONS.get(self.action, 'document')

    @property
    def action_color(self):
        return ACTION_COLORS.get(self.action, 'gray')

    @property
    def table_display_name(self):
        if self.content_type_id:
            model = self.content_type.model_class()
            if model is not None:
                return str(model._meta.verbose_name).title()
        if not self.table_name:
            return 'Record'
        return self.table_name.replace('_', ' ').capitalize()

    @property
    def user_name(self):
        if self.user_id is None:
            return 'System'
        return self.user.name or self.user.username

    @property
    def has_old_values(self):
        return bool(self.old_values)

    @property
    def has_new_values(self):
        return bool(self.new_values)

    @property
    def changed_fields(self):
        """{field: {'old': ..., 'new': ...}} for every field whose value differs."""
        if not self.has_old_values or not self.has_new_values:
            return {}
        changed = {}
        for field, new in self.new_values.items():
            old = self.old_values.get(field)
            if old != new:
                changed[field] = {'old': old, 'new': new}
        return changed

    @property
    def changed_fields_count(self):
        return len(self.changed_fields)

    @property
    def description(self):
        text = f"{self.user_name} {self.action_label.lower()} {self.table_display_name}"
        if self.record_id:
            text += f" (ID: {self.record_id})"
        return text

    @property
    def detailed_description(self):
        text = self.description
        if self.action == 'updated' and self.changed_fields:
            text += ". Changed fields: " + ', '.join(self.changed_fields)
        return text

    @property
    def user_info(self):
        return {
            'user_id': self.user_id,
            'user_name': self.user_name if self.user_id else None,
            'user_email': self.user.email if self.user_id else None,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
        }

    def format_old_value(self, field):
        return format_value((self.old_values or {}).get(field))

    def format_new_value(self, field):
        return format_value((self.new_values or {}).get(field))

    # ----- logging -----

    @classmethod
    def log_create(cls, tenant, instance, new_values, user=None, ip_address=None, user_agent=''):
        return cls._log(tenant, 'created', instance, user, ip_address, user_agent, new_values=new_values)

    @classmethod
    def log_update(cls, tenant, instance, old_values, new_values, user=None, ip_address=None, user_agent=''):
        return cls._log(
            tenant, 'updated', instance, user, ip_address, user_agent,
            old_values=old_values, new_values=new_values,
        )

    @classmethod
    def log_delete(cls, tenant, instance, old_values, user=None, ip_address=None, user_agent=''):
        """Log a deletion. Call before deleting so ``instance.pk`` is still set."""
        return cls._log(tenant, 'deleted', instance, user, ip_address, user_agent, old_values=old_values)

    @classmethod
    def log_action(cls, tenant, action, instance=None, data=None, user=None, ip_address=None, user_agent=''):
        """Log an arbitrary action such as ``login`` or ``exported``."""
        return cls._log(tenant, action, instance, user, ip_address, user_agent, new_values=data or None)

    @classmethod
    def _log(cls, tenant, action, instance, user, ip_address, user_agent, old_values=None, new_values=None):
        fields = {}
        if instance is not None:
            fields = {
                'content_type': ContentType.objects.get_for_model(instance),
                'table_name': instance._meta.db_table,
                'record_id': instance.pk,
            }
        return cls.objects.create(
            tenant=tenant,
            user=user,
            action=action,
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent or '',
            **fields,
        )

    # ----- reports -----

    @classmethod
    def _window(cls, tenant, days):
        return cls.objects.for_tenant(tenant).filter(created_at__gte=timezone.now() - timedelta(days=days))

    @classmethod
    def activity_by_user(cls, tenant, days=30):
        return list(
            cls._window(tenant, days)
            .values('user')
            .annotate(activity_count=Count('id'))
            .order_by('-activity_count', 'user')
        )

    @classmethod
    def activity_by_action(cls, tenant, days=30):
        return list(
            cls._window(tenant, days)
            .values('action')
            .annotate(count=Count('id'))
            .order_by('-count', 'action')
        )

    @classmethod
    def activity_by_table(cls, tenant, days=30):
        return list(
            cls._window(tenant, days)
            .values('table_name')
            .annotate(count=Count('id'))
            .order_by('-count', 'table_name')
        )

    @classmethod
    def recent_activity(cls, tenant, limit=50):
        return cls.objects.for_tenant(tenant).select_related('user')[:limit]
