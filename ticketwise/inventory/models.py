from django.conf import settings
from django.db import models


class ProductCategory(models.Model):
    """Groups product types and decides which identifiers a product needs"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, blank=True)
    description = models.TextField(blank=True)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='product_categories')
    is_consumable = models.BooleanField(default=False)
    requires_serial = models.BooleanField(default=False)
    requires_asset_tag = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'product_categories'
        ordering = ['name']
        verbose_name_plural = 'product categories'


class ProductType(models.Model):
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, blank=True)
    category = models.ForeignKey(ProductCategory, on_delete=models.PROTECT, null=True, blank=True, related_name='product_types')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='product_types')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'product_types'
        ordering = ['name']


class InventoryLocation(models.Model):
    """Physical place where assets are kept"""
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='inventory_locations')
    department = models.ForeignKey('organization.Department', on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_locations')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'inventory_locations'
        ordering = ['name']


class InventoryProduct(models.Model):
    """A tracked asset (notebook, monitor, license, ...)"""
    STATUS_CHOICES = [
        ('available', 'Disponível'),
        ('in_use', 'Em Uso'),
        ('maintenance', 'Em Manutenção'),
        ('reserved', 'Reservado'),
        ('written_off', 'Baixado'),
    ]

    name = models.CharField(max_length=255)
    product_type = models.ForeignKey(ProductType, on_delete=models.PROTECT, related_name='products')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='inventory_products')
    department = models.ForeignKey('organization.Department', on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_products')
    location = models.ForeignKey(InventoryLocation, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    serial_number = models.CharField(max_length=100, blank=True, null=True)
    service_tag = models.CharField(max_length=100, blank=True, null=True)
    asset_number = models.CharField(max_length=100, blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='available')
    purchase_date = models.DateField(null=True, blank=True)
    warranty_expiry = models.DateField(null=True, blank=True)
    purchase_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    invoice_number = models.CharField(max_length=100, blank=True)
    supplier_name = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    specifications = models.JSONField(default=dict, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_inventory_products')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_inventory_products')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        identifier = self.service_tag or self.serial_number or self.asset_number
        return f"{self.name} ({identifier})" if identifier else self.name

    @property
    def category(self):
        return self.product_type.category if self.product_type_id else None

    class Meta:
        db_table = 'inventory_products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['company', 'status'], name='inv_products_company_stat_idx'),
            models.Index(fields=['serial_number'], name='inv_products_serial_idx'),
            models.Index(fields=['service_tag'], name='inv_products_service_tag_idx'),
            models.Index(fields=['asset_number'], name='inv_products_asset_idx'),
        ]


class InventoryMovement(models.Model):
    """Entry, withdrawal, return or any other state change of a product"""
    MOVEMENT_TYPE_CHOICES = [
        ('entry', 'Entrada'),
        ('withdrawal', 'Retirada'),
        ('return', 'Devolução'),
        ('write_off', 'Baixa'),
        ('transfer', 'Transferência'),
        ('maintenance', 'Manutenção'),
        ('reservation', 'Reserva'),
    ]

    APPROVAL_STATUS_CHOICES = [
        ('pending', 'Pendente'),
        ('approved', 'Aprovado'),
        ('rejected', 'Rejeitado'),
    ]

    product = models.ForeignKey(InventoryProduct, on_delete=models.CASCADE, related_name='movements')
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPE_CHOICES)
    quantity = models.PositiveIntegerField(default=1)
    from_location = models.ForeignKey(InventoryLocation, on_delete=models.SET_NULL, null=True, blank=True, related_name='outgoing_movements')
    to_location = models.ForeignKey(InventoryLocation, on_delete=models.SET_NULL, null=True, blank=True, related_name='incoming_movements')
    responsible = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_responsibilities')
    ticket = models.ForeignKey('tickets.Ticket', on_delete=models.SET_NULL, null=True, blank=True, related_name='inventory_movements')
    approval_status = models.CharField(max_length=20, choices=APPROVAL_STATUS_CHOICES, default='approved')
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_inventory_movements')
    approval_date = models.DateTimeField(null=True, blank=True)
    approval_notes = models.TextField(blank=True)
    reason = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='inventory_movements')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_inventory_movements')
    movement_date = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.get_movement_type_display()} - {self.product.name}"

    class Meta:
        db_table = 'inventory_movements'
        ordering = ['-movement_date']
        indexes = [
            models.Index(fields=['company', 'approval_status'], name='inv_movements_approval_idx'),
            models.Index(fields=['product', '-movement_date'], name='inv_movements_product_idx'),
        ]


class UserInventoryAssignment(models.Model):
    """Product handed to a user by a withdrawal, closed by the return"""
    product = models.ForeignKey(InventoryProduct, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='inventory_assignments')
    movement = models.ForeignKey(InventoryMovement, on_delete=models.SET_NULL, null=True, blank=True, related_name='assignments')
    company = models.ForeignKey('core.Company', on_delete=models.CASCADE, null=True, blank=True, related_name='inventory_assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)
    expected_return_date = models.DateField(null=True, blank=True)
    returned_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    def __str__(self):
        return f"{self.product.name} -> {self.user}"

    @property
    def is_open(self):
        return self.returned_at is None

    class Meta:
        db_table = 'user_inventory_assignments'
        ordering = ['-assigned_at']
        indexes = [
            models.Index(fields=['product', 'returned_at'], name='inv_assign_product_open_idx'),
            models.Index(fields=['user', 'returned_at'], name='inv_assign_user_open_idx'),
        ]
