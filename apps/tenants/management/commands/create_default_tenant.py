# apps/tenants/management/commands/create_default_tenant.py
"""
Create the default tenant for local development.

Usage:
    python manage.py create_default_tenant [--code DEFAULT] [--name "RetailHub Demo Store"]
"""
from django.core.management.base import BaseCommand
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Create the default tenant (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument('--code', default='DEFAULT', help='Tenant code for a new default tenant')
        parser.add_argument('--name', default='RetailHub Demo Store', help='Company name for a new default tenant')

    def handle(self, *args, **options):
        existing = Tenant.objects.filter(is_default=True).first()
        if existing is not None:
            self.stdout.write(self.style.WARNING(
                f'Default tenant already exists: {existing.tenant_code} - {existing.company_name}'
            ))
            return

        tenant = Tenant.objects.create(
            tenant_code=options['code'],
            company_name=options['name'],
            status='active',
            is_trial=False,
            is_default=True,
            max_users=50,
            max_products=10000,
            max_warehouses=10,
            max_shops=10,
        )
        self.stdout.write(self.style.SUCCESS(
            f'Created default tenant {tenant.tenant_code} - {tenant.company_name} (id {tenant.id})'
        ))

        # sequences come from the post_save signal
        for seq in tenant.sequences.order_by('sequence_type'):
            self.stdout.write(f'  {seq.sequence_type}: {seq.prefix}-{"0" * seq.padding}')
