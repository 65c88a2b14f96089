"""
Serializers for authentication, users, listings, offers, heavy machinery and
messages.
"""

import json
import re

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import (
    HeavyMachine,
    MachinePurchase,
    MachineRental,
    MaintenanceRecord,
    Message,
    Mine,
    MineAttachment,
    Mineral,
    MineralAttachment,
    Offer,
)

User = get_user_model()


# ============================================================================
# Shared fields
# ============================================================================

class JSONSectionField(serializers.JSONField):
    """
    JSON field that also accepts a JSON encoded string.

    Multipart requests (listing plus PDF upload) can only carry strings, so
    sectioned listing data arrives encoded.
    """

    def __init__(self, *args, container=dict, **kwargs):
        self.container = container
        super().__init__(*args, **kwargs)

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                raise serializers.ValidationError('Value must be valid JSON.')
        data = super().to_internal_value(data)
        if not isinstance(data, self.container):
            raise serializers.ValidationError(
                f'Expected a JSON {"object" if self.container is dict else "array"}.'
            )
        return data


class LowercaseChoiceField(serializers.ChoiceField):
    """Choice field that trims and lowercases the input before matching."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.strip().lower()
        return super().to_internal_value(data)


# ============================================================================
# Authentication and users
# ============================================================================

class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Token pair serializer authenticating by email, with the role in the token.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['role'] = user.role
        return token


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration with comprehensive validation.

    Fields:
    - email: Required, unique, valid email format
    - password: Required, must meet strength requirements
    - first_name / last_name: Optional
    - contact_number: Optional, must be valid format if provided
    - role: Optional, any marketplace role except admin (defaults to customer)
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'first_name', 'last_name',
                  'contact_number', 'role', 'is_verified', 'created_at']
        read_only_fields = ['id', 'is_verified', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
            'role': {'required': False},
        }

    def validate_email(self, value):
        """
        Validate email uniqueness (case-insensitive).
        """
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )

        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))

        return value

    def validate_role(self, value):
        """
        Administrators are created by other administrators only.
        """
        if value == User.ROLE_ADMIN:
            raise serializers.ValidationError(
                "The admin role cannot be chosen at registration."
            )
        return value

    def create(self, validated_data):
        """
        Create user with hashed password and default settings.
        """
        password = validated_data.pop('password')
        validated_data['password'] = make_password(password)
        validated_data['is_verified'] = False

        # AbstractUser requires username, but we use email for authentication
        validated_data['username'] = validated_data['email'][:150]

        with transaction.atomic():
            user = User.objects.create(**validated_data)

        return user


class LoginSerializer(serializers.Serializer):
    """
    Serializer for user login with email and password.

    Actual authentication happens in the view.
    """
    email = serializers.EmailField(
        required=True,
        help_text='User email address'
    )
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'},
        help_text='User password'
    )


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in listings, offers and messages."""

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """
    Full user representation (password and Django flags excluded).
    """

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'first_name',
            'last_name',
            'contact_number',
            'role',
            'business_details',
            'preferences',
            'is_verified',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class AdminUserCreateSerializer(UserRegistrationSerializer):
    """Registration serializer used by administrators; any role is allowed."""

    class Meta(UserRegistrationSerializer.Meta):
        read_only_fields = ['id', 'created_at']

    def validate_role(self, value):
        return value

    def create(self, validated_data):
        is_verified = validated_data.pop('is_verified', False)
        user = super().create(validated_data)
        if is_verified:
            user.is_verified = True
            user.save(update_fields=['is_verified'])
        return user


class UserUpdateSerializer(serializers.ModelSerializer):
    """
    Serializer for user updates (PUT/PATCH).

    - Regular users may change their name, email, contact number, password,
      business details and preferences.
    - Only administrators may change role and verification status.
    """

    password = serializers.CharField(
        write_only=True,
        required=False,
        style={'input_type': 'password'}
    )
    business_details = JSONSectionField(required=False)
    preferences = JSONSectionField(required=False)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'contact_number', 'password',
                  'role', 'is_verified', 'business_details', 'preferences']
        extra_kwargs = {
            'email': {'required': False},
            'role': {'required': False},
            'is_verified': {'required': False},
        }

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError("A user with that email already exists.")
        return value

    def validate_password(self, value):
        try:
            validate_password(value, user=self.instance)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def validate(self, attrs):
        request = self.context.get('request')
        is_admin = request is not None and request.user.is_admin()

        if not is_admin:
            for field in ('role', 'is_verified'):
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({
                        field: 'Only administrators can change this field.'
                    })

        return attrs

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        if password:
            instance.set_password(password)
        if 'email' in validated_data:
            validated_data['username'] = validated_data['email'][:150]
        return super().update(instance, validated_data)


class BusinessDetailsSerializer(serializers.Serializer):
    """
    Business information of a seller or mine owner.
    """
    business_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    trade_name = serializers.CharField(required=False, allow_blank=True, max_length=200)
    registration_number = serializers.CharField(required=False, allow_blank=True, max_length=100)
    address = serializers.CharField(required=False, allow_blank=True, max_length=300)
    contact_person = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    products_offered = serializers.ListField(child=serializers.CharField(), required=False)
    documents = serializers.ListField(child=serializers.CharField(), required=False)

    def validate_contact_person(self, value):
        unknown = set(value) - {'name', 'email', 'phone'}
        if unknown:
            raise serializers.ValidationError(
                f"Unknown contact person fields: {', '.join(sorted(unknown))}."
            )
        return value


class BudgetRangeSerializer(serializers.Serializer):
    min = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)
    max = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, min_value=0)

    def validate(self, attrs):
        if 'min' in attrs and 'max' in attrs and attrs['min'] > attrs['max']:
            raise serializers.ValidationError('Budget minimum cannot exceed the maximum.')
        return attrs


class PreferencesSerializer(serializers.Serializer):
    """Investment interests and budget range."""
    interests = serializers.ListField(child=serializers.CharField(), required=False)
    budget_range = BudgetRangeSerializer(required=False)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        budget = value.get('budget_range')
        if budget:
            # Stored as JSON, so keep plain numbers
            value['budget_range'] = {key: float(amount) for key, amount in budget.items()}
        return value


# ============================================================================
# Attachments
# ============================================================================

class MineAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = MineAttachment
        fields = ['id', 'filename', 'url', 'mimetype', 'size', 'uploaded_at']
        read_only_fields = fields


class MineralAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = MineralAttachment
        fields = ['id', 'filename', 'url', 'mimetype', 'size', 'uploaded_at']
        read_only_fields = fields


class AttachmentMetadataSerializer(serializers.Serializer):
    """
    Metadata of a document stored elsewhere (no upload).
    """
    filename = serializers.CharField(max_length=255)
    url = serializers.CharField(max_length=500)
    mimetype = serializers.CharField(max_length=100, required=False, default='application/pdf')
    size = serializers.IntegerField(min_value=0, required=False, default=0)
    uploaded_at = serializers.DateTimeField(required=False)


# ============================================================================
# Listings
# ============================================================================

class MineSerializer(serializers.ModelSerializer):
    """
    Mine listing with its owner summary and attachments.

    Sectioned data may be sent as nested objects (JSON requests) or as JSON
    encoded strings (multipart requests with a PDF).
    """

    owner = UserSummarySerializer(read_only=True)
    attachments = MineAttachmentSerializer(many=True, read_only=True)
    legal_ownership = JSONSectionField(required=False)
    geology_resource = JSONSectionField(required=False)
    infrastructure = JSONSectionField(required=False)
    financials = JSONSectionField(required=False)
    esg = JSONSectionField(required=False)
    operational = JSONSectionField(required=False)
    market = JSONSectionField(required=False)
    media = JSONSectionField(required=False, container=list)
    documents = JSONSectionField(required=False, container=list)

    class Meta:
        model = Mine
        fields = [
            'id', 'owner', 'name', 'location', 'commodity_type', 'status', 'price',
            'description', *Mine.SECTION_FIELDS, 'media', 'documents', 'attachments',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'owner', 'attachments', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Mine name cannot be empty.")
        return value

    def validate_location(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Location cannot be empty.")
        return value

    def validate_commodity_type(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Commodity type cannot be empty.")
        return value


class MineralSerializer(serializers.ModelSerializer):
    """
    Mineral listing with attachments and its creator.
    """

    created_by = UserSummarySerializer(read_only=True)
    attachments = MineralAttachmentSerializer(many=True, read_only=True)
    mineral_type = LowercaseChoiceField(choices=Mineral.TYPE_CHOICES)
    commodity_specs = JSONSectionField(required=False)
    quantity = JSONSectionField(required=False)
    logistics = JSONSectionField(required=False)
    legal_compliance = JSONSectionField(required=False)
    pricing = JSONSectionField(required=False)
    seller_credibility = JSONSectionField(required=False)
    market = JSONSectionField(required=False)

    class Meta:
        model = Mineral
        fields = [
            'id', 'name', 'mineral_type', 'description', 'price_per_unit', 'currency',
            'available_quantity', 'latitude', 'longitude', *Mineral.SECTION_FIELDS,
            'attachments', 'created_by', 'created_at', 'last_updated_at',
        ]
        read_only_fields = ['id', 'attachments', 'created_by', 'created_at', 'last_updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Mineral name cannot be empty.")
        return value

    def validate_currency(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        latitude = attrs.get('latitude', getattr(self.instance, 'latitude', None))
        longitude = attrs.get('longitude', getattr(self.instance, 'longitude', None))
        if (latitude is None) != (longitude is None):
            raise serializers.ValidationError({
                'latitude': 'Latitude and longitude must be provided together.'
            })
        return attrs


# ============================================================================
# Offers
# ============================================================================

class OfferSerializer(serializers.ModelSerializer):
    """Read representation of an offer."""

    investor = UserSummarySerializer(read_only=True)
    mine_name = serializers.CharField(source='mine.name', read_only=True)

    class Meta:
        model = Offer
        fields = ['id', 'mine', 'mine_name', 'investor', 'amount', 'message', 'status',
                  'created_at', 'updated_at']
        read_only_fields = fields


class OfferCreateSerializer(serializers.ModelSerializer):
    """
    Serializer for submitting an offer on a mine.

    The investor is the authenticated caller; the view checks the role.
    """

    mine = serializers.PrimaryKeyRelatedField(
        queryset=Mine.objects.all(),
        error_messages={'does_not_exist': 'Mine does not exist.'}
    )

    class Meta:
        model = Offer
        fields = ['id', 'mine', 'amount', 'message', 'status', 'created_at']
        read_only_fields = ['id', 'status', 'created_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0.")
        return value

    def create(self, validated_data):
        validated_data['investor'] = self.context['request'].user
        return Offer.objects.create(**validated_data)


class OfferUpdateSerializer(serializers.ModelSerializer):
    """Investor edits of a pending offer (amount and message only)."""

    class Meta:
        model = Offer
        fields = ['amount', 'message']
        extra_kwargs = {
            'amount': {'required': False},
            'message': {'required': False},
        }

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0.")
        return value

    def validate(self, attrs):
        if not self.instance.is_pending():
            raise serializers.ValidationError(
                f"Only pending offers can be edited. This offer is {self.instance.status.lower()}."
            )
        return attrs


# ============================================================================
# Heavy machinery
# ============================================================================

class MachineRentalSerializer(serializers.ModelSerializer):
    class Meta:
        model = MachineRental
        fields = ['id', 'renter', 'start_date', 'end_date', 'price_per_day', 'notes',
                  'status', 'returned_at', 'created_at', 'updated_at']
        read_only_fields = fields


class MachinePurchaseSerializer(serializers.ModelSerializer):
    class Meta:
        model = MachinePurchase
        fields = ['id', 'buyer', 'price', 'date', 'notes', 'created_at', 'updated_at']
        read_only_fields = fields


class MaintenanceRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = MaintenanceRecord
        fields = ['id', 'title', 'description', 'cost', 'performed_at', 'performed_by',
                  'created_at', 'updated_at']
        read_only_fields = fields


class MachineImageSerializer(serializers.Serializer):
    url = serializers.CharField(max_length=500)
    caption = serializers.CharField(required=False, allow_blank=True, default='')
    is_primary = serializers.BooleanField(required=False, default=False)


class HeavyMachineSerializer(serializers.ModelSerializer):
    """
    Heavy machine with its rental, purchase and maintenance history.

    Status changes only through the lifecycle endpoints (rent, return, sell,
    maintenance, status), never through create or update.
    """

    category = LowercaseChoiceField(choices=HeavyMachine.CATEGORY_CHOICES)
    owner = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False)
    images = MachineImageSerializer(many=True, required=False)
    specs = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    rentals = MachineRentalSerializer(many=True, read_only=True)
    purchases = MachinePurchaseSerializer(many=True, read_only=True)
    maintenance_history = MaintenanceRecordSerializer(many=True, read_only=True)
    is_available_for_rent = serializers.BooleanField(read_only=True)
    current_rental = serializers.SerializerMethodField()

    class Meta:
        model = HeavyMachine
        fields = [
            'id', 'name', 'category', 'brand', 'model_name', 'year', 'purchase_price',
            'rental_price_per_day', 'owner', 'status', 'serial_number', 'address', 'country',
            'latitude', 'longitude', 'images', 'description', 'specs', 'is_available_for_rent',
            'current_rental', 'rentals', 'purchases', 'maintenance_history', 'is_active',
            'created_by', 'created_at', 'last_updated_at',
        ]
        read_only_fields = ['id', 'status', 'is_active', 'created_by', 'created_at',
                            'last_updated_at']

    def get_current_rental(self, obj):
        """Id of the outstanding rental, or None."""
        rental = obj.current_rental
        return rental.id if rental else None

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Machine name is required.")
        return value

    def validate_model_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Model is required.")
        return value

    def validate_images(self, value):
        return [dict(image) for image in value]

    def create(self, validated_data):
        user = self.context['request'].user
        validated_data.setdefault('owner', user)
        validated_data['created_by'] = user
        return HeavyMachine.objects.create(**validated_data)

    def update(self, instance, validated_data):
        # images is a nested list, so ModelSerializer.update would refuse it
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        return instance


class RentRequestSerializer(serializers.Serializer):
    start_date = serializers.DateTimeField(required=False)
    end_date = serializers.DateTimeField(required=False, allow_null=True)
    price_per_day = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                             required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        start = attrs.get('start_date')
        end = attrs.get('end_date')
        if start and end and end < start:
            raise serializers.ValidationError({
                'end_date': 'End date cannot be before the start date.'
            })
        return attrs


class SellRequestSerializer(serializers.Serializer):
    """
    Sale of a machine. The buyer defaults to the caller.
    """
    buyer = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False)
    price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    date = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class MaintenanceRequestSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                    required=False)
    performed_at = serializers.DateTimeField(required=False)
    performed_by = serializers.CharField(required=False, allow_blank=True, default='',
                                         max_length=200)
    set_status = LowercaseChoiceField(choices=HeavyMachine.STATUS_CHOICES, required=False)


class StatusRequestSerializer(serializers.Serializer):
    status = LowercaseChoiceField(choices=HeavyMachine.STATUS_CHOICES)


# ============================================================================
# Messages and payments
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    """
    Direct message. The sender is always the authenticated caller.
    """

    sender = UserSummarySerializer(read_only=True)
    receiver = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(),
        error_messages={'does_not_exist': 'Receiver does not exist.'}
    )
    mine = serializers.PrimaryKeyRelatedField(
        queryset=Mine.objects.all(),
        required=False,
        allow_null=True,
        error_messages={'does_not_exist': 'Mine does not exist.'}
    )

    class Meta:
        model = Message
        fields = ['id', 'sender', 'receiver', 'mine', 'content', 'seen', 'created_at']
        read_only_fields = ['id', 'sender', 'seen', 'created_at']

    def validate_content(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Message content cannot be empty.")
        return value

    def validate_receiver(self, value):
        request = self.context.get('request')
        if request is not None and value.pk == request.user.pk:
            raise serializers.ValidationError("You cannot send a message to yourself.")
        return value

    def create(self, validated_data):
        validated_data['sender'] = self.context['request'].user
        return Message.objects.create(**validated_data)


class PaymentIntentRequestSerializer(serializers.Serializer):
    """
    Amount in the smallest currency unit (cents) and optional currency code.
    """
    amount = serializers.IntegerField(min_value=1)
    currency = serializers.CharField(required=False, max_length=3, min_length=3)

    def validate_currency(self, value):
        if not re.match(r'^[A-Za-z]{3}$', value):
            raise serializers.ValidationError("Currency must be a three letter ISO code.")
        return value.lower()
