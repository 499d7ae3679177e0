# apps/tenants/management/commands/seed_demo.py
"""
Management command to populate demo data for local development.

Creates:
- Subscription plans and system features
- 3 demo tenants, each with warehouses, shops, users, categories, brands,
  suppliers, products and variants
- Opening stock for every product (as manual adjustments)
- One confirmed purchase per tenant, partially received so the inventory
  ledger has purchase movements

Usage:
    python manage.py seed_demo
    python manage.py seed_demo --clear  # Remove the demo tenants first
"""
import logging
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.tenants.models import Tenant, SubscriptionPlan, SystemFeature, TenantFeature
from apps.warehousing.models import Warehouse, Shop
from apps.parties.models import Supplier
from apps.catalog.models import Category, Brand, Product, ProductVariant
from apps.inventory.models import MovementType
from apps.inventory.services import StockService
from apps.orders.services import PurchaseService, PurchaseReceivingService
from users.models import Role, User

logger = logging.getLogger(__name__)

DEMO_PASSWORD = 'password'

# (plan_name, display_name, monthly, yearly, users, products, warehouses, shops, features)
PLANS = [
    ('basic', 'Basic', '29.99', '299.99', 5, 500, 1, 2, ['inventory', 'orders']),
    ('professional', 'Professional', '99.99', '999.99', 50, 10000, 5, 10,
     ['inventory', 'orders', 'purchases', 'expenses', 'reports']),
    ('enterprise', 'Enterprise', '299.99', '2999.99', 500, 100000, 50, 100,
     ['inventory', 'orders', 'purchases', 'expenses', 'reports', 'multi_location', 'api_access']),
]

# (feature_key, feature_name, category, is_premium)
FEATURES = [
    ('inventory', 'Inventory Management', 'operations', False),
    ('orders', 'Sales Orders', 'sales', False),
    ('purchases', 'Purchasing', 'operations', False),
    ('expenses', 'Expense Tracking', 'finance', False),
    ('reports', 'Reports & Analytics', 'analytics', True),
    ('multi_location', 'Multiple Locations', 'operations', True),
    ('api_access', 'API Access', 'integrations', True),
]

# (name, display_name, default_permissions, is_system_role)
ROLES = [
    ('super_admin', 'Super Administrator', [], True),
    ('tenant_admin', 'Tenant Administrator', [
        'users.view', 'users.create', 'users.edit', 'products.view', 'products.create',
        'products.edit', 'products.manage_stock', 'orders.view', 'orders.manage',
        'purchases.view', 'purchases.manage', 'purchases.receive', 'expenses.view',
        'expenses.approve', 'inventory.view', 'inventory.adjust', 'notices.create',
        'audit.view', 'dashboard.view',
    ], False),
    ('warehouse_manager', 'Warehouse Manager', [
        'products.view', 'products.manage_stock', 'inventory.view', 'inventory.adjust',
        'purchases.view', 'purchases.create', 'purchases.receive', 'suppliers.view', 'dashboard.view',
    ], False),
    ('shop_manager', 'Shop Manager', [
        'products.view', 'orders.view', 'orders.create', 'orders.manage', 'customers.view',
        'expenses.create', 'dashboard.view',
    ], False),
    ('employee', 'Employee', ['products.view', 'orders.view', 'orders.create'], False),
    ('customer', 'Customer', ['orders.view'], False),
]

TENANTS = [
    {
        'tenant_code': 'DEMO001',
        'company_name': 'TechWorld Electronics',
        'business_type': 'Electronics Retail',
        'industry': 'Electronics',
        'contact_person': 'John Smith',
        'email': 'admin@techworld.com',
        'city': 'Palo Alto',
        'country': 'United States',
        'timezone': 'America/Los_Angeles',
        'plan': 'professional',
        'prefix': 'TW',
        'categories': {'Computers': ['Laptops', 'Accessories'], 'Phones': ['Smartphones']},
        'brands': ['Apex', 'Voltline'],
        'suppliers': [('Pacific Components', 'Lisa Chen'), ('Silicon Supply Co', 'Raj Patel')],
        'products': [
            # (sku, name, category, brand, cost, price, opening stock)
            ('LAP-001', 'Apex Ultrabook 14', 'Laptops', 'Apex', '650.00', '999.00', 12),
            ('ACC-001', 'Voltline USB-C Charger', 'Accessories', 'Voltline', '9.50', '24.99', 80),
            ('PHN-001', 'Apex Phone X', 'Smartphones', 'Apex', '420.00', '749.00', 25),
        ],
        'variants': [('PHN-001', [('128GB', 'Black'), ('256GB', 'Silver')])],
    },
    {
        'tenant_code': 'DEMO002',
        'company_name': 'Fashion Forward Boutique',
        'business_type': 'Fashion Retail',
        'industry': 'Fashion',
        'contact_person': 'Sarah Johnson',
        'email': 'contact@fashionforward.com',
        'city': 'New York',
        'country': 'United States',
        'timezone': 'America/New_York',
        'plan': 'basic',
        'prefix': 'FF',
        'categories': {'Clothing': ['Tops', 'Outerwear'], 'Footwear': []},
        'brands': ['Maison Rue', 'Northline'],
        'suppliers': [('Atelier Textiles', 'Marie Dubois'), ('Stride Footwear', 'Tom Baker')],
        'products': [
            ('TOP-001', 'Linen Shirt', 'Tops', 'Maison Rue', '18.00', '49.00', 40),
            ('OUT-001', 'Wool Overcoat', 'Outerwear', 'Northline', '95.00', '249.00', 10),
            ('SHO-001', 'Leather Loafer', 'Footwear', 'Northline', '45.00', '129.00', 20),
        ],
        'variants': [('TOP-001', [('Small', 'White'), ('Medium', 'White'), ('Large', 'Blue')])],
    },
    {
        'tenant_code': 'DEMO003',
        'company_name': 'Green Grocers Market',
        'business_type': 'Grocery',
        'industry': 'Food & Beverage',
        'contact_person': 'Mike Green',
        'email': 'hello@greengrocers.com',
        'city': 'Portland',
        'country': 'United States',
        'timezone': 'America/Los_Angeles',
        'plan': 'enterprise',
        'prefix': 'GG',
        'categories': {'Produce': ['Fruit', 'Vegetables'], 'Pantry': []},
        'brands': ['Valley Farms', 'Harvest Co'],
        'suppliers': [('Valley Farms Cooperative', 'Ana Ruiz'), ('Harvest Wholesale', 'Ben Ode')],
        'products': [
            ('FRT-001', 'Organic Apples (1kg)', 'Fruit', 'Valley Farms', '1.80', '3.99', 150),
            ('VEG-001', 'Heirloom Tomatoes (500g)', 'Vegetables', 'Valley Farms', '1.20', '2.99', 90),
            ('PAN-001', 'Rolled Oats (1kg)', 'Pantry', 'Harvest Co', '1.10', '2.49', 60),
        ],
        'variants': [],
    },
]

# (username suffix, role, display name suffix)
STAFF = [
    ('admin', 'tenant_admin', 'Administrator'),
    ('warehouse', 'warehouse_manager', 'Warehouse Manager'),
    ('shop', 'shop_manager', 'Shop Manager'),
    ('staff', 'employee', 'Sales Associate'),
    ('customer', 'customer', 'Customer'),
]


class Command(BaseCommand):
    help = 'Seed demo tenants with catalog, stock and a partially received purchase'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete the demo tenants (and all of their data) before seeding',
        )

    def handle(self, *args, **options):
        with transaction.atomic():
            if options['clear']:
                self.clear_demo_data()

            plans = self.create_plans()
            self.create_features()
            self.create_roles()

            for profile in TENANTS:
                if Tenant.objects.filter(tenant_code=profile['tenant_code']).exists():
                    self.stdout.write(f"  Exists: {profile['tenant_code']} - {profile['company_name']}")
                    continue
                self.seed_tenant(profile, plans[profile['plan']])

        self.stdout.write(self.style.SUCCESS('\nDemo data seeded successfully!'))

    def clear_demo_data(self):
        self.stdout.write('Clearing existing demo tenants...')
        codes = [profile['tenant_code'] for profile in TENANTS]
        for tenant in Tenant.objects.filter(tenant_code__in=codes):
            tenant.delete()
            self.stdout.write(f'  Deleted {tenant.tenant_code}')

    def create_plans(self):
        self.stdout.write('\nCreating subscription plans...')
        plans = {}
        for order, (name, display, monthly, yearly, users, products, warehouses, shops, features) in enumerate(PLANS):
            plan, created = SubscriptionPlan.objects.get_or_create(
                plan_name=name,
                defaults={
                    'display_name': display,
                    'price_monthly': Decimal(monthly),
                    'price_yearly': Decimal(yearly),
                    'max_users': users,
                    'max_products': products,
                    'max_warehouses': warehouses,
                    'max_shops': shops,
                    'features': features,
                    'sort_order': order,
                }
            )
            plans[name] = plan
            self.stdout.write(f"  {'Created' if created else 'Exists'}: {display}")
        return plans

    def create_features(self):
        self.stdout.write('\nCreating system features...')
        for order, (key, name, category, premium) in enumerate(FEATURES):
            SystemFeature.objects.get_or_create(
                feature_key=key,
                defaults={
                    'feature_name': name,
                    'category': category,
                    'is_premium': premium,
                    'sort_order': order,
                }
            )

    def create_roles(self):
        self.stdout.write('\nCreating roles...')
        for name, display, permissions, is_system in ROLES:
            Role.objects.get_or_create(
                name=name,
                defaults={
                    'display_name': display,
                    'default_permissions': permissions,
                    'is_system_role': is_system,
                }
            )

    def seed_tenant(self, profile, plan):
        self.stdout.write(f"\nSeeding {profile['company_name']}...")
        tenant = Tenant.objects.create(
            tenant_code=profile['tenant_code'],
            company_name=profile['company_name'],
            business_type=profile['business_type'],
            industry=profile['industry'],
            contact_person=profile['contact_person'],
            email=profile['email'],
            city=profile['city'],
            country=profile['country'],
            timezone=profile['timezone'],
            is_trial=False,
            onboarding_completed=True,
        )
        plan.apply_to(tenant)
        for feature in SystemFeature.objects.filter(feature_key__in=plan.features):
            TenantFeature.objects.create(
                tenant=tenant, system_feature=feature, is_enabled=True,
            )

        prefix = profile['prefix']
        warehouse = Warehouse.objects.create(
            tenant=tenant, name='Main Warehouse', code=f'{prefix}-MAIN', is_default=True,
            city=profile['city'], capacity=Decimal('5000.00'),
        )
        shop = Shop.objects.create(
            tenant=tenant, name=f"{profile['company_name']} Flagship", code=f'{prefix}-S1',
            warehouse=warehouse, city=profile['city'],
        )

        users = self.create_users(tenant, prefix, warehouse, shop)
        categories = self.create_categories(tenant, profile['categories'])
        brands = {
            name: Brand.objects.create(tenant=tenant, name=name)
            for name in profile['brands']
        }
        suppliers = [
            Supplier.objects.create(
                tenant=tenant, name=name, contact_person=contact,
                payment_terms='NET30', credit_limit=Decimal('50000.00'), rating=Decimal('4.5'),
            )
            for name, contact in profile['suppliers']
        ]

        products = self.create_products(
            tenant, profile, categories, brands, suppliers[0], warehouse, shop, users['warehouse'],
        )
        self.create_purchase(tenant, suppliers[0], warehouse, list(products.values()), users['warehouse'])

        self.stdout.write(self.style.SUCCESS(
            f"  {len(users)} users, {len(categories)} categories, {len(products)} products"
        ))
        logger.info("Seeded demo tenant %s", tenant.tenant_code)
        return tenant

    def create_users(self, tenant, prefix, warehouse, shop):
        users = {}
        for suffix, role, title in STAFF:
            users[suffix] = User.objects.create_user(
                username=f'{prefix.lower()}_{suffix}',
                email=f'{suffix}@{prefix.lower()}.example.com',
                password=DEMO_PASSWORD,
                tenant=tenant,
                role=role,
                name=f'{prefix} {title}',
                warehouse=warehouse if role == 'warehouse_manager' else None,
                shop=shop if role in ('shop_manager', 'employee') else None,
            )
        warehouse.manager = users['warehouse']
        warehouse.save(update_fields=['manager', 'updated_at'])
        shop.manager = users['shop']
        shop.save(update_fields=['manager', 'updated_at'])
        return users

    def create_categories(self, tenant, tree):
        categories = {}
        for order, (root_name, children) in enumerate(tree.items()):
            root = Category.objects.create(tenant=tenant, name=root_name, sort_order=order)
            categories[root_name] = root
            for child_order, child_name in enumerate(children):
                categories[child_name] = Category.objects.create(
                    tenant=tenant, name=child_name, parent=root, sort_order=child_order,
                )
        return categories

    def create_products(self, tenant, profile, categories, brands, supplier, warehouse, shop, user):
        stock = StockService(tenant, user)
        products = {}
        for sku, name, category, brand, cost, price, opening in profile['products']:
            product = Product.objects.create(
                tenant=tenant,
                sku=f"{profile['prefix']}-{sku}",
                name=name,
                category=categories[category],
                brand=brands[brand],
                supplier=supplier,
                warehouse=warehouse,
                shop=shop,
                cost_price=Decimal(cost),
                selling_price=Decimal(price),
                min_stock_level=5,
                reorder_point=10,
            )
            stock.apply_change(product, opening, MovementType.ADJUSTMENT, reason='Opening stock')
            products[sku] = product

        for sku, variants in profile['variants']:
            product = products[sku]
            for variant_name, color in variants:
                variant = ProductVariant.objects.create(
                    tenant=tenant,
                    product=product,
                    variant_name=variant_name,
                    sku=f'{product.sku}-{variant_name.upper()}',
                    color=color,
                )
                stock.apply_change(variant, 5, MovementType.ADJUSTMENT, reason='Opening stock')
        return products

    def create_purchase(self, tenant, supplier, warehouse, products, user):
        """A confirmed purchase with its first line received in part."""
        purchases = PurchaseService(tenant, user)
        purchase = purchases.create_purchase(
            supplier,
            items=[(product, 20, product.cost_price) for product in products],
            warehouse=warehouse,
            payment_terms='NET30',
            notes='Demo restock order',
        )
        purchases.confirm(purchase)

        first_line = purchase.items.order_by('id').first()
        result = PurchaseReceivingService(tenant, user).receive_item(purchase, first_line.pk, 8)
        self.stdout.write(
            f'  Purchase {purchase.purchase_number}: received {result.quantity_received} '
            f'({purchase.get_status_display()})'
        )
        return purchase
