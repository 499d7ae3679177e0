# apps/notifications/models.py
"""
Tenant notices, events and announcements shown to an audience of users.

A notice is visible while it is published, its publish date has arrived and
its expiry date has not passed. ``now`` may be passed to every time-dependent
helper so callers can evaluate visibility at a fixed instant.
"""
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin


TYPE_ICONS = {
    'notice': 'information-circle',
    'event': 'calendar',
    'announcement': 'speakerphone',
    'alert': 'exclamation-triangle',
    'maintenance': 'cog',
}

TYPE_COLORS = {
    'notice': 'blue',
    'event': 'green',
    'announcement': 'purple',
    'alert': 'red',
    'maintenance': 'orange',
}

PRIORITY_COLORS = {
    'low': 'gray',
    'medium': 'blue',
    'high': 'orange',
    'urgent': 'red',
}

PRIORITY_BADGES = {
    'low': 'bg-gray-100 text-gray-800',
    'medium': 'bg-blue-100 text-blue-800',
    'high': 'bg-orange-100 text-orange-800',
    'urgent': 'bg-red-100 text-red-800',
}

STATUS_BADGES = {
    'Draft': 'bg-gray-100 text-gray-800',
    'Expired': 'bg-red-100 text-red-800',
    'Scheduled': 'bg-yellow-100 text-yellow-800',
    'Active': 'bg-green-100 text-green-800',
}


class NoticeEventQuerySet(TenantQuerySet):
    def published(self):
        return self.filter(is_published=True)

    def drafts(self):
        return self.filter(is_published=False)

    def active(self, now=None):
        now = now or timezone.now()
        return self.filter(is_published=True).filter(
            Q(publish_date__isnull=True) | Q(publish_date__lte=now),
            Q(expiry_date__isnull=True) | Q(expiry_date__gte=now),
        )

    def expired(self, now=None):
        return self.filter(expiry_date__lt=now or timezone.now())

    def scheduled(self, now=None):
        return self.filter(is_published=True, publish_date__gt=now or timezone.now())

    def by_type(self, notice_type):
        return self.filter(notice_type=notice_type)

    def by_priority(self, priority):
        return self.filter(priority=priority)

    def by_audience(self, audience):
        return self.filter(target_audience=audience)

    def notices(self):
        return self.by_type('notice')

    def events(self):
        return self.by_type('event')

    def announcements(self):
        return self.by_type('announcement')

    def alerts(self):
        return self.by_type('alert')

    def high_priority(self):
        return self.filter(priority__in=['high', 'urgent'])

    def urgent(self):
        return self.filter(priority='urgent')

    def recent(self, days=30):
        return self.filter(created_at__gte=timezone.now() - timedelta(days=days))

    def visible_to(self, user, now=None):
        """Active notices whose audience includes ``user``."""
        return self.active(now).filter(target_audience__in=NoticeEvent.audiences_for(user))


class NoticeEvent(TenantMixin, TimestampMixin):
    TYPE_CHOICES = [
        ('notice', 'Notice'),
        ('event', 'Event'),
        ('announcement', 'Announcement'),
        ('alert', 'Alert'),
        ('maintenance', 'Maintenance'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    AUDIENCE_CHOICES = [
        ('all', 'Everyone'),
        ('admins', 'Administrators'),
        ('managers', 'Managers'),
        ('employees', 'Employees'),
        ('customers', 'Customers'),
    ]

    title = models.CharField(max_length=200)
    content = models.TextField()
    notice_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='notice')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    target_audience = models.CharField(max_length=20, choices=AUDIENCE_CHOICES, default='all')
    is_published = models.BooleanField(default=False)
    publish_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Not shown before this time; empty means immediately"
    )
    expiry_date = models.DateTimeField(null=True, blank=True)
    attachment_url = models.URLField(max_length=500, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notice_events'
    )

    objects = NoticeEventQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'is_published']),
            models.Index(fields=['tenant', 'notice_type']),
            models.Index(fields=['expiry_date']),
        ]

    def __str__(self):
        return self.title

    # ----- state -----

    @property
    def is_draft(self):
        return not self.is_published

    def is_active(self, now=None):
        now = now or timezone.now()
        if not self.is_published:
            return False
        if self.publish_date and self.publish_date > now:
            return False
        if self.expiry_date and self.expiry_date < now:
            return False
        return True

    def is_expired(self, now=None):
        return bool(self.expiry_date and self.expiry_date < (now or timezone.now()))

    def is_scheduled(self, now=None):
        return bool(self.publish_date and self.publish_date > (now or timezone.now()))

    @property
    def has_attachment(self):
        return bool(self.attachment_url)

    def status_label(self, now=None):
        if self.is_draft:
            return 'Draft'
        if self.is_expired(now):
            return 'Expired'
        if self.is_scheduled(now):
            return 'Scheduled'
        return 'Active'

    def status_badge_class(self, now=None):
        return STATUS_BADGES[self.status_label(now)]

    def days_until_publish(self, now=None):
        now = now or timezone.now()
        if not self.publish_date or self.publish_date <= now:
            return None
        return (self.publish_date - now).days

    def days_until_expiry(self, now=None):
        now = now or timezone.now()
        if not self.expiry_date or self.expiry_date <= now:
            return None
        return (self.expiry_date - now).days

    # ----- lifecycle -----

    def publish(self, now=None):
        self.is_published = True
        if not self.publish_date:
            self.publish_date = now or timezone.now()
        self.save(update_fields=['is_published', 'publish_date', 'updated_at'])

    def unpublish(self):
        self.is_published = False
        self.save(update_fields=['is_published', 'updated_at'])

    def schedule(self, publish_date, expiry_date=None):
        self.publish_date = publish_date
        if expiry_date:
            self.expiry_date = expiry_date
        self.is_published = True
        self.save(update_fields=['publish_date', 'expiry_date', 'is_published', 'updated_at'])

    def extend(self, new_expiry_date):
        self.expiry_date = new_expiry_date
        self.save(update_fields=['expiry_date', 'updated_at'])

    # ----- audience -----

    @staticmethod
    def audiences_for(user):
        """Audience values that include ``user``."""
        audiences = ['all']
        if user.is_admin:
            audiences += ['admins', 'managers', 'employees']
        elif user.is_manager:
            audiences += ['managers', 'employees']
        elif user.is_employee:
            audiences.append('employees')
        if user.is_customer:
            audiences.append('customers')
        return audiences

    def can_be_viewed_by(self, user, now=None):
        if not self.is_active(now):
            return False
        return self.target_audience in self.audiences_for(user)

    # ----- display -----

    def short_content(self, length=150):
        if len(self.content) <= length:
            return self.content
        return self.content[:length] + '...'

    @property
    def type_icon(self):
        return TYPE_ICONS.get(self.notice_type, 'document')

    @property
    def type_color(self):
        return TYPE_COLORS.get(self.notice_type, 'gray')

    @property
    def priority_color(self):
        return PRIORITY_COLORS.get(self.priority, 'gray')

    @property
    def priority_badge_class(self):
        return PRIORITY_BADGES.get(self.priority, PRIORITY_BADGES['medium'])
