"""
Data models for the Mining Marketplace.

Covers user accounts, mine and mineral listings with their document
attachments, investment offers, heavy machinery with its rental, purchase and
maintenance history, and direct messages.
"""

import math
import uuid
from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .exceptions import InvalidStateError
from .validators import validate_contact_number, validate_machine_year, validate_pdf_document


EARTH_RADIUS_KM = 6378.1
EARTH_RADIUS_MI = 3963.2


class ActiveQuerySet(models.QuerySet):
    """QuerySet for soft-deletable records."""

    def active(self):
        """Exclude records that were soft deleted (is_active=False)."""
        return self.filter(is_active=True)


class User(AbstractUser):
    """
    Custom User model extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address
    - contact_number: Optional phone number with validation
    - role: Marketplace role (mine owner, investor, consultant, ...)
    - business_details: Company information shown on listings
    - preferences: Investment interests and budget range
    - is_verified: Verification status set by an administrator
    - created_at: Account creation timestamp
    - updated_at: Last update timestamp
    """

    ROLE_MINE_OWNER = 'mine_owner'
    ROLE_INVESTOR = 'investor'
    ROLE_CONSULTANT = 'consultant'
    ROLE_ADMIN = 'admin'
    ROLE_MINERAL_OWNER = 'mineral_owner'
    ROLE_MINERAL_MANAGER = 'mineral_manager'
    ROLE_CUSTOMER = 'customer'

    ROLE_CHOICES = [
        (ROLE_MINE_OWNER, 'Mine Owner'),
        (ROLE_INVESTOR, 'Investor'),
        (ROLE_CONSULTANT, 'Consultant'),
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_MINERAL_OWNER, 'Mineral Owner'),
        (ROLE_MINERAL_MANAGER, 'Mineral Manager'),
        (ROLE_CUSTOMER, 'Customer'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    contact_number = models.CharField(
        _('contact number'),
        max_length=20,
        blank=True,
        default='',
        validators=[validate_contact_number],
        help_text=_('Optional. Enter contact number in international format.')
    )

    role = models.CharField(
        _('role'),
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_CUSTOMER,
        help_text=_('Marketplace role of the account.')
    )

    business_details = models.JSONField(
        _('business details'),
        default=dict,
        blank=True,
        help_text=_('Business name, registration number, contact person, products offered.')
    )

    preferences = models.JSONField(
        _('preferences'),
        default=dict,
        blank=True,
        help_text=_('Investment interests and budget range.')
    )

    is_verified = models.BooleanField(
        _('verified status'),
        default=False,
        help_text=_('Indicates whether the account has been verified by an administrator.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
            models.Index(fields=['role'], name='user_role_idx'),
            models.Index(fields=['is_verified'], name='user_verified_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    def is_admin(self):
        """
        Check if user has administrative rights on the marketplace.

        Returns:
            bool: True for the admin role or Django superusers
        """
        return self.role == self.ROLE_ADMIN or self.is_superuser

    def has_role(self, *roles):
        """Return True if the user's role is one of ``roles``."""
        return self.role in roles

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is provided and lowercase
        - Role is provided

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if not self.role:
            raise ValidationError({
                'role': _('Role is required.')
            })

    def save(self, *args, **kwargs):
        """
        Normalize email and validate on update.

        Creation skips full_clean so that duplicate emails surface as the
        database IntegrityError handled by the registration view.
        """
        if self.email:
            self.email = self.email.lower()

        if self.pk is not None:
            self.full_clean()

        super().save(*args, **kwargs)


# ============================================================================
# Listing Models
# ============================================================================

class Mine(models.Model):
    """
    Mine listing offered for investment or sale.

    Sectioned business data (legal ownership, geology, infrastructure,
    financials, ESG, operations, market) is kept as free-form objects.
    The owner is fixed at creation.
    """

    STATUS_ACTIVE = 'Active'
    STATUS_IDLE = 'Idle'
    STATUS_EXPLORATION = 'Exploration'
    STATUS_DEVELOPMENT = 'Development'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_IDLE, 'Idle'),
        (STATUS_EXPLORATION, 'Exploration'),
        (STATUS_DEVELOPMENT, 'Development'),
    ]

    SECTION_FIELDS = [
        'legal_ownership',
        'geology_resource',
        'infrastructure',
        'financials',
        'esg',
        'operational',
        'market',
    ]

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='mines',
        help_text=_('User listing this mine')
    )

    name = models.CharField(_('name'), max_length=200)
    location = models.CharField(_('location'), max_length=300)
    commodity_type = models.CharField(
        _('commodity type'),
        max_length=100,
        help_text=_('For example "Coal (Anthracite)" or "Gold"')
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_EXPLORATION
    )

    price = models.DecimalField(
        _('price'),
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Price cannot be negative.'))],
        help_text=_('Asking price for the listing')
    )

    description = models.TextField(_('description'), blank=True, default='')

    legal_ownership = models.JSONField(_('legal ownership'), default=dict, blank=True)
    geology_resource = models.JSONField(_('geology and resources'), default=dict, blank=True)
    infrastructure = models.JSONField(_('infrastructure'), default=dict, blank=True)
    financials = models.JSONField(_('financials'), default=dict, blank=True)
    esg = models.JSONField(_('environmental, social and governance'), default=dict, blank=True)
    operational = models.JSONField(_('operational'), default=dict, blank=True)
    market = models.JSONField(_('market'), default=dict, blank=True)

    media = models.JSONField(_('media URLs'), default=list, blank=True)
    documents = models.JSONField(_('document links'), default=list, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('mine')
        verbose_name_plural = _('mines')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner'], name='mine_owner_idx'),
            models.Index(fields=['status'], name='mine_status_idx'),
            models.Index(fields=['commodity_type'], name='mine_commodity_idx'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Name, location and commodity type are not blank
        - Owner does not change after creation

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        for field in ('name', 'location', 'commodity_type'):
            value = getattr(self, field)
            if not value or not value.strip():
                raise ValidationError({
                    field: _('This field cannot be empty.')
                })

        if self.pk is not None:
            old_owner_id = Mine.objects.filter(pk=self.pk).values_list('owner_id', flat=True).first()
            if old_owner_id is not None and old_owner_id != self.owner_id:
                raise ValidationError({
                    'owner': _('The owner of a mine cannot be changed.')
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Mineral(models.Model):
    """
    Mineral commodity listing (coal, gold, chrome, ...).

    Soft deleted through ``is_active``; read paths call
    ``Mineral.objects.active()`` explicitly.
    """

    TYPE_CHOICES = [
        ('metallic', 'Metallic'),
        ('non-metallic', 'Non-metallic'),
        ('precious', 'Precious'),
        ('industrial', 'Industrial'),
        ('energy', 'Energy'),
        ('gemstone', 'Gemstone'),
    ]

    SECTION_FIELDS = [
        'commodity_specs',
        'quantity',
        'logistics',
        'legal_compliance',
        'pricing',
        'seller_credibility',
        'market',
    ]

    name = models.CharField(_('name'), max_length=50)
    mineral_type = models.CharField(_('mineral type'), max_length=20, choices=TYPE_CHOICES)
    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        validators=[MaxLengthValidator(1000)]
    )

    price_per_unit = models.DecimalField(
        _('price per unit'),
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'), message=_('Price per unit must be greater than 0.'))],
        help_text=_('Price per ton, kg or ounce')
    )
    currency = models.CharField(_('currency'), max_length=10, default='USD')
    available_quantity = models.DecimalField(
        _('available quantity'),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Quantity cannot be negative.'))]
    )

    latitude = models.FloatField(
        _('latitude'),
        null=True,
        blank=True,
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    longitude = models.FloatField(
        _('longitude'),
        null=True,
        blank=True,
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )

    commodity_specs = models.JSONField(_('commodity specifications'), default=dict, blank=True)
    quantity = models.JSONField(_('quantity'), default=dict, blank=True)
    logistics = models.JSONField(_('logistics'), default=dict, blank=True)
    legal_compliance = models.JSONField(_('legal and compliance'), default=dict, blank=True)
    pricing = models.JSONField(_('pricing and payment terms'), default=dict, blank=True)
    seller_credibility = models.JSONField(_('seller credibility'), default=dict, blank=True)
    market = models.JSONField(_('market'), default=dict, blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='minerals'
    )

    is_active = models.BooleanField(_('active'), default=True)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    last_updated_at = models.DateTimeField(_('last updated at'), auto_now=True)

    objects = ActiveQuerySet.as_manager()

    class Meta:
        verbose_name = _('mineral')
        verbose_name_plural = _('minerals')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['mineral_type'], name='mineral_type_idx'),
            models.Index(fields=['is_active'], name='mineral_active_idx'),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        if not self.name or not self.name.strip():
            raise ValidationError({'name': _('Mineral name cannot be empty.')})
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({
                'latitude': _('Latitude and longitude must be provided together.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def distance_km_to(self, latitude, longitude):
        """
        Great-circle distance in kilometres from this listing to a point.

        Returns:
            float or None: None when the listing has no coordinates
        """
        if self.latitude is None or self.longitude is None:
            return None
        lat1, lng1 = math.radians(self.latitude), math.radians(self.longitude)
        lat2, lng2 = math.radians(latitude), math.radians(longitude)
        a = (
            math.sin((lat2 - lat1) / 2) ** 2
            + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
        )
        return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))




def attachment_upload_path(instance, filename):
    """
    Generate upload path for listing documents.

    Path format: {upload_dir}/{random hex}-{filename}
    """
    return f'{instance.UPLOAD_DIR}/{uuid.uuid4().hex}-{filename}'


class AttachmentBase(models.Model):
    """
    Document attached to a listing.

    Either an uploaded PDF (``file``) or a metadata-only entry pointing at an
    external URL.
    """

    UPLOAD_DIR = 'attachments'

    file = models.FileField(
        _('file'),
        upload_to=attachment_upload_path,
        blank=True,
        validators=[validate_pdf_document]
    )
    filename = models.CharField(_('original filename'), max_length=255)
    url = models.CharField(_('url'), max_length=500, blank=True, default='')
    mimetype = models.CharField(_('MIME type'), max_length=100)
    size = models.PositiveBigIntegerField(_('size in bytes'))
    uploaded_at = models.DateTimeField(_('uploaded at'), default=timezone.now)

    class Meta:
        abstract = True
        ordering = ['uploaded_at', 'id']

    def __str__(self):
        return self.filename

    def clean(self):
        super().clean()
        if not self.file and not self.url:
            raise ValidationError({'url': _('An uploaded file or a URL is required.')})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
        if self.file and not self.url:
            self.url = self.file.url
            super().save(update_fields=['url'])

    @classmethod
    def from_upload(cls, upload, **parent):
        """
        Create an attachment from an uploaded file.

        Args:
            upload: UploadedFile from request.FILES
            **parent: The owning listing, e.g. ``mine=mine``

        Returns:
            AttachmentBase: Saved attachment
        """
        return cls.objects.create(
            file=upload,
            filename=upload.name,
            mimetype=getattr(upload, 'content_type', '') or 'application/pdf',
            size=upload.size,
            **parent
        )


class MineAttachment(AttachmentBase):
    UPLOAD_DIR = 'mine-docs'

    mine = models.ForeignKey(Mine, on_delete=models.CASCADE, related_name='attachments')

    class Meta(AttachmentBase.Meta):
        verbose_name = _('mine attachment')
        verbose_name_plural = _('mine attachments')


class MineralAttachment(AttachmentBase):
    UPLOAD_DIR = 'mineral-docs'

    mineral = models.ForeignKey(Mineral, on_delete=models.CASCADE, related_name='attachments')

    class Meta(AttachmentBase.Meta):
        verbose_name = _('mineral attachment')
        verbose_name_plural = _('mineral attachments')


# ============================================================================
# Offer Model
# ============================================================================

class Offer(models.Model):
    """
    Investment offer made by an investor on a mine listing.

    Lifecycle:
    - Pending -> Accepted (terminal)
    - Pending -> Rejected (terminal)

    At most one offer per mine can be Accepted. Accepting an offer rejects
    every other pending offer on the same mine in the same transaction.
    """

    STATUS_PENDING = 'Pending'
    STATUS_ACCEPTED = 'Accepted'
    STATUS_REJECTED = 'Rejected'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    mine = models.ForeignKey(
        Mine,
        on_delete=models.CASCADE,
        related_name='offers',
        help_text=_('Mine the offer is made on')
    )

    investor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offers',
        help_text=_('Investor making the offer')
    )

    amount = models.DecimalField(
        _('amount'),
        max_digits=14,
        decimal_places=2,
        help_text=_('Offered amount (must be greater than 0)')
    )

    message = models.TextField(_('message'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('offer')
        verbose_name_plural = _('offers')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['mine', 'status'], name='offer_mine_status_idx'),
            models.Index(fields=['investor'], name='offer_investor_idx'),
            models.Index(fields=['status'], name='offer_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['mine'],
                condition=models.Q(status='Accepted'),
                name='one_accepted_offer_per_mine'
            )
        ]

    def __str__(self):
        return f"Offer of {self.amount} on {self.mine_id} by {self.investor_id} ({self.status})"

    def clean(self):
        """
        Validate model fields and status transitions.

        Ensures:
        - Amount is greater than 0
        - New offers are made by investors
        - Accepted and Rejected offers never change status

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.amount is not None and self.amount <= 0:
            raise ValidationError({
                'amount': _('Amount must be greater than 0.')
            })

        if self.pk is None:
            if self.investor_id and not self.investor.has_role(User.ROLE_INVESTOR):
                raise ValidationError({
                    'investor': _('Investor does not exist or is not an investor.')
                })
            if self.status != self.STATUS_PENDING:
                raise ValidationError({
                    'status': _('New offers must be pending.')
                })
        else:
            old_status = Offer.objects.filter(pk=self.pk).values_list('status', flat=True).first()
            if old_status and old_status != self.STATUS_PENDING and old_status != self.status:
                raise ValidationError({
                    'status': f'Cannot change an offer that is already {old_status.lower()}.'
                })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def is_pending(self):
        return self.status == self.STATUS_PENDING

    def accept(self):
        """
        Accept this offer and reject every other pending offer on the mine.

        Runs as one transaction. The mine row is locked first so that two
        concurrent accepts on the same mine are serialized; the offer is then
        re-read under lock and must still be pending. If anything fails the
        transaction rolls back and no offer changes status.

        Listing ownership is not transferred.

        Returns:
            int: Number of competing offers that were rejected

        Raises:
            InvalidStateError: If the offer is no longer pending
        """
        with transaction.atomic():
            Mine.objects.select_for_update().get(pk=self.mine_id)
            current = Offer.objects.select_for_update().get(pk=self.pk)

            if current.status != self.STATUS_PENDING:
                raise InvalidStateError(
                    _('Only pending offers can be accepted.'),
                    code='offer_not_pending'
                )

            if Offer.objects.filter(mine_id=current.mine_id, status=self.STATUS_ACCEPTED).exists():
                raise InvalidStateError(
                    _('This mine already has an accepted offer.'),
                    code='mine_offer_accepted'
                )

            current.status = self.STATUS_ACCEPTED
            current.save(update_fields=['status', 'updated_at'])

            rejected = Offer.objects.filter(
                mine_id=current.mine_id,
                status=self.STATUS_PENDING
            ).exclude(pk=current.pk).update(
                status=self.STATUS_REJECTED,
                updated_at=timezone.now()
            )

        self.status = current.status
        self.updated_at = current.updated_at
        return rejected

    def reject(self):
        """
        Reject this offer.

        Raises:
            InvalidStateError: If the offer is no longer pending
        """
        with transaction.atomic():
            current = Offer.objects.select_for_update().get(pk=self.pk)

            if current.status != self.STATUS_PENDING:
                raise InvalidStateError(
                    _('Only pending offers can be rejected.'),
                    code='offer_not_pending'
                )

            current.status = self.STATUS_REJECTED
            current.save(update_fields=['status', 'updated_at'])

        self.status = current.status
        self.updated_at = current.updated_at


# ============================================================================
# Heavy Machinery Models
# ============================================================================

class HeavyMachine(models.Model):
    """
    Heavy equipment listed for rent or sale.

    Status lifecycle:
    - available -> rented (rent)
    - rented -> rented | available (return_rental, derived from rentals)
    - any -> sold (sell, terminal)
    - any -> any (log_maintenance with an explicit status, set_status)

    Rentals, purchases and maintenance entries are child records owned by the
    machine and kept in append order.
    """

    CATEGORY_CHOICES = [
        ('excavator', 'Excavator'),
        ('bulldozer', 'Bulldozer'),
        ('loader', 'Loader'),
        ('grader', 'Grader'),
        ('crane', 'Crane'),
        ('compactor', 'Compactor'),
        ('dump-truck', 'Dump Truck'),
        ('backhoe', 'Backhoe'),
        ('forklift', 'Forklift'),
        ('concrete-mixer', 'Concrete Mixer'),
        ('drill', 'Drill'),
        ('generator', 'Generator'),
        ('other', 'Other'),
    ]

    STATUS_AVAILABLE = 'available'
    STATUS_RENTED = 'rented'
    STATUS_SOLD = 'sold'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_RESERVED = 'reserved'

    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_RENTED, 'Rented'),
        (STATUS_SOLD, 'Sold'),
        (STATUS_MAINTENANCE, 'Maintenance'),
        (STATUS_RESERVED, 'Reserved'),
    ]

    name = models.CharField(_('name'), max_length=200)
    category = models.CharField(_('category'), max_length=20, choices=CATEGORY_CHOICES)
    brand = models.CharField(_('brand'), max_length=100, blank=True, default='')
    model_name = models.CharField(_('model'), max_length=100)
    year = models.PositiveIntegerField(_('year'), validators=[validate_machine_year])

    purchase_price = models.DecimalField(
        _('purchase price'),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text=_('"Buy now" price if available')
    )
    rental_price_per_day = models.DecimalField(
        _('rental price per day'),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='machines')
    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_AVAILABLE
    )

    serial_number = models.CharField(_('serial number'), max_length=100, blank=True, default='')
    address = models.CharField(_('address'), max_length=300, blank=True, default='')
    country = models.CharField(_('country'), max_length=100, blank=True, default='')
    latitude = models.FloatField(
        _('latitude'),
        null=True,
        blank=True,
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    longitude = models.FloatField(
        _('longitude'),
        null=True,
        blank=True,
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )

    images = models.JSONField(
        _('images'),
        default=list,
        blank=True,
        help_text=_('List of {"url", "caption", "is_primary"} objects')
    )
    description = models.TextField(
        _('description'),
        blank=True,
        default='',
        validators=[MaxLengthValidator(2000)]
    )
    specs = models.JSONField(
        _('specifications'),
        default=dict,
        blank=True,
        help_text=_('For example {"enginePower": "250kW", "weight": "20t"}')
    )

    is_active = models.BooleanField(_('active'), default=True)
    created_by = models.ForeignKey(User, on_delete=models.CASCADE, related_name='created_machines')
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    last_updated_at = models.DateTimeField(_('last updated at'), auto_now=True)

    objects = ActiveQuerySet.as_manager()

    class Meta:
        verbose_name = _('heavy machine')
        verbose_name_plural = _('heavy machines')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['category', 'status'], name='machine_category_status_idx'),
            models.Index(fields=['brand', 'model_name', 'year'], name='machine_brand_model_year_idx'),
            models.Index(fields=['status'], name='machine_status_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.category})"

    def clean(self):
        super().clean()
        if not self.name or not self.name.strip():
            raise ValidationError({'name': _('Machine name is required.')})
        if not self.model_name or not self.model_name.strip():
            raise ValidationError({'model_name': _('Model is required.')})
        if not isinstance(self.specs, dict) or not all(
            isinstance(value, str) for value in self.specs.values()
        ):
            raise ValidationError({'specs': _('Specifications must map names to text values.')})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_available_for_rent(self):
        return self.status == self.STATUS_AVAILABLE

    @property
    def current_rental(self):
        """First active rental that has not been returned, or None."""
        for rental in self.rentals.all():
            if rental.is_outstanding():
                return rental
        return None

    def _lock(self):
        return HeavyMachine.objects.select_for_update().get(pk=self.pk)

    def _sync_from(self, machine):
        self.status = machine.status
        self.last_updated_at = machine.last_updated_at

    def rent(self, renter, start_date=None, end_date=None, price_per_day=None, notes=''):
        """
        Start a rental: available -> rented.

        Args:
            renter: User renting the machine
            start_date: Rental start (defaults to now)
            end_date: Optional planned end
            price_per_day: Daily price (defaults to the machine's rental price)
            notes: Free text

        Returns:
            MachineRental: The new active rental

        Raises:
            InvalidStateError: If the machine is not available
            ValidationError: If no daily price can be determined
        """
        with transaction.atomic():
            machine = self._lock()

            if machine.status != self.STATUS_AVAILABLE:
                raise InvalidStateError(
                    f'Machine not available (status={machine.status})',
                    code='machine_unavailable'
                )

            if price_per_day is None:
                price_per_day = machine.rental_price_per_day
            if price_per_day is None:
                raise ValidationError({
                    'price_per_day': _('A daily rental price is required.')
                })

            rental = MachineRental.objects.create(
                machine=machine,
                renter=renter,
                start_date=start_date or timezone.now(),
                end_date=end_date,
                price_per_day=price_per_day,
                notes=notes or ''
            )

            machine.status = self.STATUS_RENTED
            machine.save(update_fields=['status', 'last_updated_at'])

        self._sync_from(machine)
        return rental

    def return_rental(self, rental_id):
        """
        Mark a rental returned and recompute the machine status.

        The status is only derived from the rentals while the machine is
        available or rented; sold, reserved and maintenance stay as set.

        Returns:
            MachineRental: The returned rental

        Raises:
            MachineRental.DoesNotExist: If the rental does not belong to this machine
            InvalidStateError: If the rental is not active
        """
        with transaction.atomic():
            machine = self._lock()
            rental = machine.rentals.select_for_update().get(pk=rental_id)

            if rental.status != MachineRental.STATUS_ACTIVE:
                raise InvalidStateError(
                    _('Rental is not active'),
                    code='rental_not_active'
                )

            rental.status = MachineRental.STATUS_RETURNED
            rental.returned_at = timezone.now()
            rental.save(update_fields=['status', 'returned_at', 'updated_at'])

            if machine.status in (self.STATUS_AVAILABLE, self.STATUS_RENTED):
                machine.status = derive_rental_status(machine.rentals.all())
                machine.save(update_fields=['status', 'last_updated_at'])

        self._sync_from(machine)
        return rental

    def sell(self, buyer, price, date=None, notes=''):
        """
        Record a sale: any status except sold -> sold.

        Outstanding rentals are left untouched.

        Returns:
            MachinePurchase: The recorded purchase

        Raises:
            InvalidStateError: If the machine is already sold
        """
        with transaction.atomic():
            machine = self._lock()

            if machine.status == self.STATUS_SOLD:
                raise InvalidStateError(
                    _('Machine already sold'),
                    code='machine_sold'
                )

            purchase = MachinePurchase.objects.create(
                machine=machine,
                buyer=buyer,
                price=price,
                date=date or timezone.now(),
                notes=notes or ''
            )

            machine.status = self.STATUS_SOLD
            machine.save(update_fields=['status', 'last_updated_at'])

        self._sync_from(machine)
        return purchase

    def log_maintenance(self, title, description='', cost=Decimal('0.00'), performed_at=None,
                        performed_by='', new_status=None):
        """
        Append a maintenance entry, optionally forcing a new status.

        Returns:
            MaintenanceRecord: The new entry
        """
        if new_status is not None and new_status not in dict(self.STATUS_CHOICES):
            raise ValidationError({
                'status': f'Invalid status "{new_status}".'
            })

        with transaction.atomic():
            machine = self._lock()

            record = MaintenanceRecord.objects.create(
                machine=machine,
                title=title,
                description=description or '',
                cost=cost if cost is not None else Decimal('0.00'),
                performed_at=performed_at or timezone.now(),
                performed_by=performed_by or ''
            )

            if new_status is not None:
                machine.status = new_status
            machine.save(update_fields=['status', 'last_updated_at'])

        self._sync_from(machine)
        return record

    def set_status(self, new_status):
        """
        Administrative override of the machine status.

        Bypasses every lifecycle guard; only the value itself is validated.
        """
        if new_status not in dict(self.STATUS_CHOICES):
            raise ValidationError({
                'status': f'Invalid status "{new_status}".'
            })

        with transaction.atomic():
            machine = self._lock()
            machine.status = new_status
            machine.save(update_fields=['status', 'last_updated_at'])

        self._sync_from(machine)


class MachineRental(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_RETURNED = 'returned'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_RETURNED, 'Returned'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    machine = models.ForeignKey(HeavyMachine, on_delete=models.CASCADE, related_name='rentals')
    renter = models.ForeignKey(User, on_delete=models.CASCADE, related_name='machine_rentals')
    start_date = models.DateTimeField(_('start date'))
    end_date = models.DateTimeField(_('end date'), null=True, blank=True)
    price_per_day = models.DecimalField(
        _('price per day'),
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    notes = models.TextField(_('notes'), blank=True, default='')
    returned_at = models.DateTimeField(_('returned at'), null=True, blank=True)
    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE
    )
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('machine rental')
        verbose_name_plural = _('machine rentals')
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Rental of {self.machine_id} by {self.renter_id} ({self.status})"

    def clean(self):
        super().clean()
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError({
                'end_date': _('End date cannot be before the start date.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def is_outstanding(self):
        return self.status == self.STATUS_ACTIVE and self.returned_at is None


class MachinePurchase(models.Model):
    machine = models.ForeignKey(HeavyMachine, on_delete=models.CASCADE, related_name='purchases')
    buyer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='machine_purchases')
    price = models.DecimalField(
        _('price'),
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    date = models.DateTimeField(_('date'), default=timezone.now)
    notes = models.TextField(_('notes'), blank=True, default='')
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('machine purchase')
        verbose_name_plural = _('machine purchases')
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"Purchase of {self.machine_id} by {self.buyer_id}"

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class MaintenanceRecord(models.Model):
    machine = models.ForeignKey(HeavyMachine, on_delete=models.CASCADE, related_name='maintenance_history')
    title = models.CharField(_('title'), max_length=200)
    description = models.TextField(_('description'), blank=True, default='')
    cost = models.DecimalField(
        _('cost'),
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    performed_at = models.DateTimeField(_('performed at'), default=timezone.now)
    performed_by = models.CharField(
        _('performed by'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Vendor name or user')
    )
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('maintenance record')
        verbose_name_plural = _('maintenance records')
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


def derive_rental_status(rentals):
    """
    Machine status implied by its rentals.

    Args:
        rentals: Iterable of objects with ``status`` and ``returned_at``

    Returns:
        str: 'rented' if any rental is active and not returned, else 'available'
    """
    for rental in rentals:
        if rental.status == MachineRental.STATUS_ACTIVE and rental.returned_at is None:
            return HeavyMachine.STATUS_RENTED
    return HeavyMachine.STATUS_AVAILABLE


# ============================================================================
# Messaging
# ============================================================================

class Message(models.Model):
    """Direct message between two users, optionally about a mine."""

    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_messages')
    receiver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_messages')
    mine = models.ForeignKey(
        Mine,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='messages'
    )
    content = models.TextField(_('content'))
    seen = models.BooleanField(_('seen'), default=False)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['sender', 'receiver'], name='message_sender_receiver_idx'),
            models.Index(fields=['mine'], name='message_mine_idx'),
        ]

    def __str__(self):
        return f"Message from {self.sender_id} to {self.receiver_id}"

    def clean(self):
        super().clean()
        if not self.content or not self.content.strip():
            raise ValidationError({'content': _('Message content cannot be empty.')})
        if self.sender_id and self.sender_id == self.receiver_id:
            raise ValidationError({'receiver': _('You cannot send a message to yourself.')})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)
