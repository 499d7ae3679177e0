# apps/catalog/models.py
"""
Product catalog models.

Models:
- Category: Hierarchical product categories (parent/subcategories)
- Brand: Product brands
- Product: Sellable product; carries the on-hand stock counter
- ProductVariant: Colour/size variant of a product with its own stock counter

Stock counters (Product.stock_quantity, ProductVariant.stock_quantity) are
only changed through apps.inventory.services.StockService so every change
leaves an InventoryMovement behind.
"""
from decimal import Decimal, ROUND_HALF_UP

from django.db import models
from django.db.models import F, Sum
from django.utils import timezone
from simple_history.models import HistoricalRecords

from shared.managers import TenantQuerySet
from shared.models import TenantMixin, TimestampMixin
from apps.warehousing.models import stock_value


TWO_PLACES = Decimal('0.01')


# =============================================================================
# CATEGORY / BRAND
# =============================================================================

class CategoryQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def roots(self):
        return self.filter(parent__isnull=True)

    def children(self):
        return self.filter(parent__isnull=False)

    def ordered(self):
        return self.order_by('sort_order', 'name')


class Category(TenantMixin, TimestampMixin):
    """
    Product category. Categories nest through ``parent``; a category with no
    parent is a root.
    """
    # Guards walks up the parent chain against accidental cycles
    MAX_DEPTH = 10

    name = models.CharField(max_length=255)
    category_code = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    parent = models.ForeignKey(
        'self',
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='subcategories'
    )
    image_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    objects = CategoryQuerySet.as_manager()

    class Meta:
        verbose_name_plural = 'Categories'
        ordering = ['sort_order', 'name']
        unique_together = [('tenant', 'name', 'parent')]
        indexes = [
            models.Index(fields=['tenant', 'parent']),
        ]

    def __str__(self):
        return self.path_string

    @property
    def is_root(self):
        return self.parent_id is None

    @property
    def has_children(self):
        return self.subcategories.exists()

    @property
    def has_products(self):
        return self.products.exists()

    @property
    def depth(self):
        depth = 0
        category = self
        while category.parent_id is not None and depth < self.MAX_DEPTH:
            depth += 1
            category = category.parent
        return depth

    @property
    def path(self):
        """Categories from the root down to this one."""
        path = []
        category = self
        while category is not None and len(path) <= self.MAX_DEPTH:
            path.insert(0, category)
            category = category.parent
        return path

    def get_path_string(self, separator=' > '):
        return separator.join(c.name for c in self.path)

    @property
    def path_string(self):
        return self.get_path_string()

    def all_children(self):
        """Every descendant category, depth first."""
        descendants = []
        for child in self.subcategories.all():
            descendants.append(child)
            descendants.extend(child.all_children())
        return descendants

    def all_products(self):
        """Products in this category and all of its descendants."""
        ids = [self.pk] + [c.pk for c in self.all_children()]
        return Product.objects.filter(category_id__in=ids)

    @property
    def product_count(self):
        return self.products.count()

    @property
    def total_product_count(self):
        return self.all_products().count()

    @property
    def active_product_count(self):
        return self.products.filter(status='active').count()

    def can_be_deleted(self):
        return not self.has_products and not self.has_children

    def activate(self):
        self.is_active = True
        self.save(update_fields=['is_active', 'updated_at'])

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])

    @classmethod
    def root_categories(cls, tenant):
        return cls.objects.for_tenant(tenant).roots().active().ordered()

    @classmethod
    def hierarchy(cls, tenant):
        """
        Active categories as a nested list of ``{'category': c, 'children': [...]}``
        dicts, built from a single query.
        """
        categories = list(cls.objects.for_tenant(tenant).active().ordered())
        by_parent = {}
        for category in categories:
            by_parent.setdefault(category.parent_id, []).append(category)

        def build(parent_id):
            return [
                {'category': c, 'children': build(c.pk)}
                for c in by_parent.get(parent_id, [])
            ]

        return build(None)


class BrandQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def with_products(self):
        return self.filter(products__isnull=False).distinct()

    def without_products(self):
        return self.filter(products__isnull=True)


class Brand(TenantMixin, TimestampMixin):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    logo_url = models.URLField(blank=True)
    website_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)

    objects = BrandQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        unique_together = [('tenant', 'name')]

    def __str__(self):
        return self.name

    @property
    def product_count(self):
        return self.products.count()

    @property
    def active_product_count(self):
        return self.products.filter(status='active').count()

    @property
    def total_stock_value(self):
        return stock_value(self.products.all())

    @property
    def total_revenue(self):
        return self.products.aggregate(total=Sum('total_revenue'))['total'] or Decimal('0.00')

    def top_selling_products(self, limit=10):
        return self.products.order_by('-total_sold', '-total_revenue')[:limit]

    def can_be_deleted(self):
        return not self.products.exists()

    def activate(self):
        self.is_active = True
        self.save(update_fields=['is_active', 'updated_at'])

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])


# =============================================================================
# PRODUCT
# =============================================================================

class ProductQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(status=Product.Status.ACTIVE)

    def inactive(self):
        return self.filter(status=Product.Status.INACTIVE)

    def discontinued(self):
        return self.filter(status=Product.Status.DISCONTINUED)

    def out_of_stock(self):
        return self.filter(status=Product.Status.OUT_OF_STOCK)

    def in_stock(self):
        return self.filter(stock_quantity__gt=0)

    def low_stock(self):
        return self.filter(stock_quantity__lte=F('min_stock_level'))

    def need_reorder(self):
        return self.filter(stock_quantity__lte=F('reorder_point'))

    def featured(self):
        return self.filter(is_featured=True)

    def digital(self):
        return self.filter(is_digital=True)

    def physical(self):
        return self.filter(is_digital=False)

    def by_category(self, category):
        return self.filter(category=category)

    def by_brand(self, brand):
        return self.filter(brand=brand)

    def by_supplier(self, supplier):
        return self.filter(supplier=supplier)

    def by_shop(self, shop):
        return self.filter(shop=shop)

    def by_warehouse(self, warehouse):
        return self.filter(warehouse=warehouse)

    def with_discount(self):
        return self.filter(discount_price__isnull=False)

    def by_price_range(self, min_price, max_price):
        return self.filter(selling_price__range=(min_price, max_price))

    def by_tag(self, tag):
        # JSON containment is not portable across backends, so match in Python
        ids = [pk for pk, tags in self.values_list('pk', 'tags') if tag in (tags or [])]
        return self.filter(pk__in=ids)


class Product(TenantMixin, TimestampMixin):
    """
    A sellable product.

    ``stock_quantity`` is the on-hand counter for products sold without
    variants; variants carry their own counters.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'
        DISCONTINUED = 'discontinued', 'Discontinued'
        OUT_OF_STOCK = 'out_of_stock', 'Out of Stock'

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    short_description = models.CharField(max_length=500, blank=True)
    sku = models.CharField(max_length=100, help_text="Stock keeping unit (unique per tenant)")
    barcode = models.CharField(max_length=100, blank=True)

    category = models.ForeignKey(
        Category,
        on_delete=models.RESTRICT,
        null=True,
        blank=True,
        related_name='products'
    )
    brand = models.ForeignKey(
        Brand,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    supplier = models.ForeignKey(
        'parties.Supplier',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    shop = models.ForeignKey(
        'warehousing.Shop',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )
    warehouse = models.ForeignKey(
        'warehousing.Warehouse',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products'
    )

    # Pricing
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Tax rate in percent"
    )

    # Stock
    stock_quantity = models.IntegerField(default=0, help_text="On-hand quantity")
    min_stock_level = models.IntegerField(default=0)
    max_stock_level = models.IntegerField(null=True, blank=True)
    reorder_point = models.IntegerField(default=0)

    # Physical attributes (dimensions in cm, weight in kg)
    weight = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    dimensions_length = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    dimensions_width = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    dimensions_height = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=50, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    is_featured = models.BooleanField(default=False)
    is_digital = models.BooleanField(default=False)
    tags = models.JSONField(default=list, blank=True)
    meta_title = models.CharField(max_length=255, blank=True)
    meta_description = models.TextField(blank=True)
    primary_image_url = models.URLField(blank=True)
    gallery_images = models.JSONField(default=list, blank=True)

    # Sales statistics
    total_sold = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    last_sold_at = models.DateTimeField(null=True, blank=True)

    objects = ProductQuerySet.as_manager()
    history = HistoricalRecords()

    class Meta:
        ordering = ['name']
        unique_together = [('tenant', 'sku')]
        indexes = [
            models.Index(fields=['tenant', 'status']),
            models.Index(fields=['tenant', 'category']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='product_stock_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"

    # ----- stock state -----

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE

    @property
    def is_in_stock(self):
        return self.stock_quantity > 0

    @property
    def is_low_stock(self):
        return self.stock_quantity <= self.min_stock_level

    @property
    def needs_reorder(self):
        return self.stock_quantity <= self.reorder_point

    @property
    def stock_status(self):
        if self.stock_quantity <= 0:
            return 'out_of_stock'
        if self.is_low_stock:
            return 'low_stock'
        if self.needs_reorder:
            return 'needs_reorder'
        return 'in_stock'

    @property
    def has_variants(self):
        return self.variants.exists()

    # ----- pricing -----

    @property
    def has_discount(self):
        return self.discount_price is not None and self.discount_price < self.selling_price

    @property
    def actual_price(self):
        return self.discount_price if self.has_discount else self.selling_price

    @property
    def discount_percentage(self):
        if not self.has_discount or not self.selling_price:
            return Decimal('0')
        pct = (self.selling_price - self.discount_price) / self.selling_price * 100
        return pct.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def discount_amount(self):
        if not self.has_discount:
            return Decimal('0.00')
        return self.selling_price - self.discount_price

    @property
    def profit(self):
        return self.actual_price - self.cost_price

    @property
    def profit_margin(self):
        """Profit as a percentage of cost price."""
        if self.cost_price <= 0:
            return Decimal('0')
        return (self.profit / self.cost_price * 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    # ----- physical -----

    @property
    def has_physical_dimensions(self):
        return bool(self.dimensions_length and self.dimensions_width and self.dimensions_height)

    @property
    def volume(self):
        """Volume in cubic metres."""
        if not self.has_physical_dimensions:
            return Decimal('0')
        return self.dimensions_length * self.dimensions_width * self.dimensions_height / Decimal('1000000')

    # ----- tags / images -----

    def add_tag(self, tag):
        if tag not in (self.tags or []):
            self.tags = [*(self.tags or []), tag]
            self.save(update_fields=['tags', 'updated_at'])

    def remove_tag(self, tag):
        self.tags = [t for t in (self.tags or []) if t != tag]
        self.save(update_fields=['tags', 'updated_at'])

    def add_gallery_image(self, image_url):
        if image_url not in (self.gallery_images or []):
            self.gallery_images = [*(self.gallery_images or []), image_url]
            self.save(update_fields=['gallery_images', 'updated_at'])

    def remove_gallery_image(self, image_url):
        self.gallery_images = [i for i in (self.gallery_images or []) if i != image_url]
        self.save(update_fields=['gallery_images', 'updated_at'])

    # ----- stock changes (ledgered) -----

    def add_stock(self, quantity, movement_type='purchase', reason='', user=None, reference=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).add_stock(
            self, quantity, movement_type=movement_type, reason=reason, reference=reference,
        )

    def reduce_stock(self, quantity, movement_type='sale', reason='', user=None, reference=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).reduce_stock(
            self, quantity, movement_type=movement_type, reason=reason, reference=reference,
        )

    def update_stock(self, new_quantity, reason='', user=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).update_stock(self, new_quantity, reason=reason)

    def record_sale(self, quantity, amount):
        self.total_sold += quantity
        self.total_revenue += Decimal(amount)
        self.last_sold_at = timezone.now()
        self.save(update_fields=['total_sold', 'total_revenue', 'last_sold_at', 'updated_at'])

    # ----- status -----

    def _set_status(self, status):
        self.status = status
        self.save(update_fields=['status', 'updated_at'])

    def activate(self):
        self._set_status(self.Status.ACTIVE)

    def deactivate(self):
        self._set_status(self.Status.INACTIVE)

    def discontinue(self):
        self._set_status(self.Status.DISCONTINUED)

    def mark_as_out_of_stock(self):
        self._set_status(self.Status.OUT_OF_STOCK)

    def set_featured(self, featured=True):
        self.is_featured = featured
        self.save(update_fields=['is_featured', 'updated_at'])


class ProductVariantQuerySet(TenantQuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def for_product(self, product):
        return self.filter(product=product)

    def in_stock(self):
        return self.filter(stock_quantity__gt=0)

    def out_of_stock(self):
        return self.filter(stock_quantity__lte=0)

    def by_color(self, color):
        return self.filter(color=color)

    def by_size(self, size):
        return self.filter(size=size)


class ProductVariant(TenantMixin, TimestampMixin):
    """
    A colour/size variant of a product. Price and weight fall back to the
    parent product when not set.
    """
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    variant_name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100)
    barcode = models.CharField(max_length=100, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    stock_quantity = models.IntegerField(default=0, help_text="On-hand quantity")
    weight = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    color = models.CharField(max_length=50, blank=True)
    size = models.CharField(max_length=50, blank=True)
    image_url = models.URLField(blank=True)
    is_active = models.BooleanField(default=True)

    objects = ProductVariantQuerySet.as_manager()
    history = HistoricalRecords()

    class Meta:
        ordering = ['product', 'variant_name']
        unique_together = [('tenant', 'sku')]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='variant_stock_non_negative',
            ),
        ]

    def __str__(self):
        return self.full_name

    @property
    def is_in_stock(self):
        return self.stock_quantity > 0

    @property
    def full_name(self):
        return f"{self.product.name} - {self.variant_name}"

    @property
    def display_name(self):
        attributes = [a for a in (self.color, self.size) if a]
        if not attributes:
            return self.variant_name
        return f"{self.variant_name} ({', '.join(attributes)})"

    @property
    def effective_weight(self):
        if self.weight is not None:
            return self.weight
        return self.product.weight or Decimal('0')

    @property
    def base_price(self):
        if self.price is not None:
            return self.price
        return self.product.selling_price

    @property
    def has_discount(self):
        return self.product.has_discount

    @property
    def discounted_price(self):
        """Base price reduced by the parent product's discount percentage."""
        if not self.has_discount:
            return self.base_price
        factor = 1 - self.product.discount_percentage / 100
        return (self.base_price * factor).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def actual_price(self):
        return self.discounted_price if self.has_discount else self.base_price

    @property
    def total_sold(self):
        return self.order_items.filter(order__status='delivered').aggregate(
            total=Sum('quantity'))['total'] or 0

    @property
    def total_revenue(self):
        return self.order_items.filter(order__status='delivered').aggregate(
            total=Sum('total_price'))['total'] or Decimal('0.00')

    def add_stock(self, quantity, movement_type='purchase', reason='', user=None, reference=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).add_stock(
            self, quantity, movement_type=movement_type, reason=reason, reference=reference,
        )

    def reduce_stock(self, quantity, movement_type='sale', reason='', user=None, reference=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).reduce_stock(
            self, quantity, movement_type=movement_type, reason=reason, reference=reference,
        )

    def update_stock(self, new_quantity, reason='', user=None):
        from apps.inventory.services import StockService
        return StockService(self.tenant, user).update_stock(self, new_quantity, reason=reason)

    def activate(self):
        self.is_active = True
        self.save(update_fields=['is_active', 'updated_at'])

    def deactivate(self):
        self.is_active = False
        self.save(update_fields=['is_active', 'updated_at'])
