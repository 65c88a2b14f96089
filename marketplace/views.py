"""
API views for the Mining Marketplace.

Every handler authenticates through JWT, asks ``authorize()`` before touching
anything that is not public, and translates its own failures into the
``{"status": "fail", "message": ...}`` envelope.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import authenticate, get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Max, Min, Q, Sum
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .exceptions import InvalidStateError, error_message, error_response, validation_details
from .models import (
    EARTH_RADIUS_KM,
    EARTH_RADIUS_MI,
    HeavyMachine,
    MachineRental,
    Message,
    Mine,
    MineAttachment,
    Mineral,
    MineralAttachment,
    Offer,
)
from .payments import PaymentProviderError, PaymentsNotConfigured, create_payment_intent
from .permissions import IsAdminRole, authorize
from .serializers import (
    AdminUserCreateSerializer,
    AttachmentMetadataSerializer,
    BusinessDetailsSerializer,
    EmailTokenObtainPairSerializer,
    HeavyMachineSerializer,
    LoginSerializer,
    MaintenanceRequestSerializer,
    MessageSerializer,
    MineAttachmentSerializer,
    MineralSerializer,
    MineSerializer,
    OfferCreateSerializer,
    OfferSerializer,
    OfferUpdateSerializer,
    PaymentIntentRequestSerializer,
    PreferencesSerializer,
    RentRequestSerializer,
    SellRequestSerializer,
    StatusRequestSerializer,
    UserRegistrationSerializer,
    UserSerializer,
    UserUpdateSerializer,
)
from .validators import validate_pdf_document

User = get_user_model()
logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = 'You do not have permission to perform this action.'


class QueryParamError(ValueError):
    """A query string parameter has an invalid value."""


class ClientIPMixin:
    def get_client_ip(self, request):
        """
        Get client IP address from request.
        Handles proxy headers for accurate IP detection.
        """
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            ip = x_forwarded_for.split(',')[0].strip()
        else:
            ip = request.META.get('REMOTE_ADDR')
        return ip


def success(data, status_code=status.HTTP_200_OK, results=None):
    """
    Build the ``{"status": "success", "data": ...}`` envelope used by the
    mineral and heavy machine endpoints.
    """
    body = {'status': 'success'}
    if results is not None:
        body['results'] = results
    body['data'] = data
    return Response(body, status=status_code)


def not_found(label):
    return error_response(f'No {label} found with that ID.', status.HTTP_404_NOT_FOUND)


def forbidden(message=FORBIDDEN_MESSAGE):
    return error_response(message, status.HTTP_403_FORBIDDEN)


def invalid_input(errors):
    return error_response('Invalid input.', status.HTTP_400_BAD_REQUEST, details=errors)


def domain_error(exc):
    """
    Translate a Django ValidationError raised by a model into a response.

    InvalidStateError becomes 409 Conflict, everything else 400.
    """
    if isinstance(exc, InvalidStateError):
        return error_response(error_message(exc), status.HTTP_409_CONFLICT)
    return error_response(error_message(exc), status.HTTP_400_BAD_REQUEST,
                          details=validation_details(exc))


def parse_decimal(params, name, minimum=None):
    value = params.get(name)
    if value is None or value == '':
        return None
    try:
        number = Decimal(value)
    except (ValueError, InvalidOperation):
        raise QueryParamError(f'Invalid value for "{name}". Must be a valid number.')
    if not number.is_finite():
        raise QueryParamError(f'Invalid value for "{name}". Must be a valid number.')
    if minimum is not None and number < minimum:
        raise QueryParamError(f'"{name}" cannot be less than {minimum}.')
    return number


def parse_int(params, name, default, minimum=1):
    value = params.get(name)
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except ValueError:
        raise QueryParamError(f'Invalid value for "{name}". Must be an integer.')
    if number < minimum:
        raise QueryParamError(f'"{name}" must be at least {minimum}.')
    return number


def parse_bool(params, name):
    value = params.get(name)
    if value is None or value == '':
        return None
    lowered = value.lower()
    if lowered in ('true', '1', 'yes'):
        return True
    if lowered in ('false', '0', 'no'):
        return False
    raise QueryParamError(f'Invalid value for "{name}". Must be "true" or "false".')


def single_upload(request):
    """
    Return the one uploaded file of a multipart request.

    Raises:
        DjangoValidationError: If more than one file was uploaded
    """
    files = [upload for key in request.FILES for upload in request.FILES.getlist(key)]
    if len(files) > 1:
        raise DjangoValidationError('Only one PDF file can be uploaded.', code='too_many_files')
    if files:
        validate_pdf_document(files[0])
        return files[0]
    return None


# ============================================================================
# Authentication
# ============================================================================

class EmailTokenObtainPairView(TokenObtainPairView):
    """
    Token pair endpoint authenticating by email; tokens carry the role claim.
    """
    serializer_class = EmailTokenObtainPairSerializer


class ThrottledTokenRefreshView(TokenRefreshView):
    """
    POST /api/token/refresh/

    Rotation and blacklisting of the old refresh token follow SIMPLE_JWT.
    Rate limited under the "refresh" throttle scope.
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'


def token_pair_for(user):
    refresh = EmailTokenObtainPairSerializer.get_token(user)
    return {'access': str(refresh.access_token), 'refresh': str(refresh)}


class UserRegistrationView(ClientIPMixin, generics.CreateAPIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Request body: {
        "email": "owner@example.com",
        "password": "secret123",
        "first_name": "Thabo",
        "last_name": "Nkosi",
        "role": "mine_owner",
        "contact_number": "+27 11 555 0100"
    }

    Success response (201): the user plus an access/refresh token pair.

    Error responses:
    - 400: Invalid data, duplicate email, or the admin role requested
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        """
        Handle registration, catching IntegrityError from concurrent duplicate
        email attempts.
        """
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            user = serializer.save()
        except IntegrityError as e:
            if 'email' in str(e).lower() or 'unique' in str(e).lower():
                return invalid_input({'email': ['A user with that email already exists.']})
            raise

        logger.info(
            f"User registered. Email: {user.email}, Role: {user.role}, "
            f"IP: {self.get_client_ip(request)}"
        )

        return Response(
            {'user': UserSerializer(user).data, **token_pair_for(user)},
            status=status.HTTP_201_CREATED
        )


class LoginView(ClientIPMixin, APIView):
    """
    API endpoint for user login with JWT token generation.

    Security features:
    - Rate limiting through the 'login' throttle scope
    - Generic error message to prevent user enumeration
    - Failed login attempt logging for security monitoring
    - Case-insensitive email lookup via the email authentication backend

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "password123"}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {"id": 1, "email": "user@example.com", "role": "investor", ...}
    }

    Error response (401): {"status": "fail", "message": "Invalid credentials"}
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = self.get_client_ip(request)

        user = authenticate(request, email=email, password=password)
        if user is None:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            return error_response('Invalid credentials', status.HTTP_401_UNAUTHORIZED)

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            **token_pair_for(user),
            'user': UserSerializer(user).data,
        }, status=status.HTTP_200_OK)


class CurrentUserView(APIView):
    """
    GET /api/auth/me/ - the authenticated user's own record.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserSerializer(request.user).data, status=status.HTTP_200_OK)


# ============================================================================
# Users
# ============================================================================

class UserListView(ClientIPMixin, APIView):
    """
    Administrative user management.

    GET /api/users/?role=investor&is_verified=true
    POST /api/users/  (any role, including admin)

    Error responses:
    - 401: Missing or invalid token
    - 403: Caller is not an administrator
    """
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get(self, request, *args, **kwargs):
        queryset = User.objects.all()

        role = request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        try:
            is_verified = parse_bool(request.query_params, 'is_verified')
        except QueryParamError as e:
            return error_response(str(e))
        if is_verified is not None:
            queryset = queryset.filter(is_verified=is_verified)

        return Response(UserSerializer(queryset, many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = AdminUserCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            user = serializer.save()
        except IntegrityError:
            return invalid_input({'email': ['A user with that email already exists.']})

        logger.info(
            f"User created by administrator. User: {user.email}, Role: {user.role}, "
            f"Admin: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class UserDetailView(ClientIPMixin, APIView):
    """
    GET/PUT/PATCH/DELETE /api/users/<id>/

    Any authenticated user may read a profile. Updates and deletion are
    limited to the user themself or an administrator; only administrators
    may change role or verification status.
    """
    permission_classes = [IsAuthenticated]

    def get_user(self, pk):
        try:
            return User.objects.get(pk=pk)
        except User.DoesNotExist:
            return None

    def get(self, request, pk, *args, **kwargs):
        target = self.get_user(pk)
        if target is None:
            return not_found('user')
        return Response(UserSerializer(target).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=True)

    def _update(self, request, pk, partial):
        target = self.get_user(pk)
        if target is None:
            return not_found('user')

        if not authorize(request.user, 'user.update', target):
            logger.warning(
                f"Unauthorized user update attempt. Target: {target.pk}, "
                f"User: {request.user.email}, IP: {self.get_client_ip(request)}"
            )
            return forbidden()

        serializer = UserUpdateSerializer(
            target,
            data=request.data,
            partial=partial,
            context={'request': request}
        )
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"User updated. Target: {target.pk}, By: {request.user.email}, Partial: {partial}"
        )
        return Response(UserSerializer(target).data)

    def delete(self, request, pk, *args, **kwargs):
        target = self.get_user(pk)
        if target is None:
            return not_found('user')

        if not authorize(request.user, 'user.delete', target):
            return forbidden()

        target.delete()
        logger.info(f"User deleted. Target: {pk}, By: {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)


class UserSectionView(APIView):
    """
    Replace one JSON section of a user (business details or preferences).

    Subclasses set ``field`` and ``serializer_class``.
    """
    permission_classes = [IsAuthenticated]
    field = None
    serializer_class = None

    def put(self, request, pk, *args, **kwargs):
        try:
            target = User.objects.get(pk=pk)
        except User.DoesNotExist:
            return not_found('user')

        if not authorize(request.user, 'user.update', target):
            return forbidden()

        serializer = self.serializer_class(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        setattr(target, self.field, serializer.validated_data)
        target.save(update_fields=[self.field, 'updated_at'])

        logger.info(f"User {self.field} replaced. Target: {target.pk}, By: {request.user.email}")
        return Response(UserSerializer(target).data)

    def patch(self, request, pk, *args, **kwargs):
        return self.put(request, pk, *args, **kwargs)


class BusinessDetailsView(UserSectionView):
    """PUT /api/users/<id>/business-details/"""
    field = 'business_details'
    serializer_class = BusinessDetailsSerializer


class PreferencesView(UserSectionView):
    """PUT /api/users/<id>/preferences/"""
    field = 'preferences'
    serializer_class = PreferencesSerializer


class UserVerificationView(ClientIPMixin, APIView):
    """
    Admin-only endpoint for verifying accounts.

    PATCH /api/users/<id>/verify/
    Request body (optional): {"is_verified": false} to revoke

    Idempotent: verifying an already verified account succeeds.
    """
    permission_classes = [IsAuthenticated, IsAdminRole]

    def patch(self, request, pk, *args, **kwargs):
        try:
            target = User.objects.get(pk=pk)
        except User.DoesNotExist:
            logger.warning(
                f"Verification attempted for non-existent user. User ID: {pk}, "
                f"Admin: {request.user.email}, IP: {self.get_client_ip(request)}"
            )
            return not_found('user')

        value = request.data.get('is_verified', True)
        if not isinstance(value, bool):
            return error_response('"is_verified" must be a boolean.')

        was_verified = target.is_verified
        target.is_verified = value
        target.save(update_fields=['is_verified', 'updated_at'])

        logger.info(
            f"User verification set. User: {target.email} (ID: {target.id}), "
            f"Verified: {was_verified} -> {value}, Admin: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(UserSerializer(target).data)

    def post(self, request, pk, *args, **kwargs):
        return self.patch(request, pk, *args, **kwargs)


# ============================================================================
# Mines
# ============================================================================

def mine_queryset():
    return Mine.objects.select_related('owner').prefetch_related('attachments')


class MineListCreateView(ClientIPMixin, APIView):
    """
    API endpoint for listing and creating mine listings.

    GET /api/mines/ (public)
    Query Parameters:
    - owner: Owner user id
    - commodity_type: Case-insensitive exact commodity
    - status: Active, Idle, Exploration or Development
    - min_price / max_price: Price range

    POST /api/mines/ (mine owners and administrators)
    Accepts JSON, or multipart/form-data with at most one PDF file
    (sectioned data sent as JSON strings). The caller becomes the owner.

    Error responses:
    - 400: Invalid data, invalid filter, non-PDF or oversized file, or more
      than one file
    - 401: Missing or invalid token (POST)
    - 403: Caller's role may not list mines
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, *args, **kwargs):
        queryset = mine_queryset()
        params = request.query_params

        owner = params.get('owner')
        if owner:
            if not owner.isdigit():
                return error_response('Invalid value for "owner". Must be a user id.')
            queryset = queryset.filter(owner_id=int(owner))

        commodity_type = params.get('commodity_type')
        if commodity_type:
            queryset = queryset.filter(commodity_type__iexact=commodity_type)

        mine_status = params.get('status')
        if mine_status:
            if mine_status not in dict(Mine.STATUS_CHOICES):
                return error_response(f'Invalid value for "status": {mine_status}.')
            queryset = queryset.filter(status=mine_status)

        try:
            min_price = parse_decimal(params, 'min_price', minimum=0)
            max_price = parse_decimal(params, 'max_price', minimum=0)
        except QueryParamError as e:
            return error_response(str(e))

        if min_price is not None and max_price is not None and min_price > max_price:
            return error_response('Minimum price cannot be greater than maximum price.')
        if min_price is not None:
            queryset = queryset.filter(price__gte=min_price)
        if max_price is not None:
            queryset = queryset.filter(price__lte=max_price)

        return Response(MineSerializer(queryset, many=True).data)

    def post(self, request, *args, **kwargs):
        if not authorize(request.user, 'mine.create'):
            logger.warning(
                f"Mine creation denied. User: {request.user.email}, Role: {request.user.role}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden('Only mine owners can list mines.')

        serializer = MineSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            upload = single_upload(request)
            with transaction.atomic():
                mine = serializer.save(owner=request.user)
                if upload is not None:
                    MineAttachment.from_upload(upload, mine=mine)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Mine created. Mine ID: {mine.id}, Name: {mine.name}, Owner: {request.user.email}, "
            f"Attachment: {upload is not None}, IP: {self.get_client_ip(request)}"
        )
        return Response(MineSerializer(mine_queryset().get(pk=mine.pk)).data,
                        status=status.HTTP_201_CREATED)


class MineDetailView(ClientIPMixin, APIView):
    """
    GET/PUT/PATCH/DELETE /api/mines/<id>/

    Reading is public; updates and deletion are limited to the owner or an
    administrator. The owner cannot be changed.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        mine = mine_queryset().filter(pk=pk).first()
        if mine is None:
            return not_found('mine')
        return Response(MineSerializer(mine).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=False)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=True)

    def _update(self, request, pk, partial):
        mine = mine_queryset().filter(pk=pk).first()
        if mine is None:
            return not_found('mine')

        if not authorize(request.user, 'mine.update', mine):
            logger.warning(
                f"Unauthorized mine update attempt. Mine ID: {pk}, User: {request.user.email}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden()

        serializer = MineSerializer(mine, data=request.data, partial=partial)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(f"Mine updated. Mine ID: {pk}, By: {request.user.email}, Partial: {partial}")
        return Response(MineSerializer(mine_queryset().get(pk=pk)).data)

    def delete(self, request, pk, *args, **kwargs):
        mine = Mine.objects.filter(pk=pk).first()
        if mine is None:
            return not_found('mine')

        if not authorize(request.user, 'mine.delete', mine):
            return forbidden()

        mine.delete()
        logger.info(f"Mine deleted. Mine ID: {pk}, By: {request.user.email}")
        return Response({'message': 'Mine deleted'}, status=status.HTTP_200_OK)


class MineAttachmentUploadView(ClientIPMixin, APIView):
    """
    POST /api/mines/<id>/attachment/

    Upload exactly one PDF (25MB max) to a mine. Owner or administrator only.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        mine = Mine.objects.filter(pk=pk).first()
        if mine is None:
            return not_found('mine')

        if not authorize(request.user, 'mine.attach', mine):
            return forbidden()

        try:
            upload = single_upload(request)
            if upload is None:
                return error_response('No PDF file uploaded.')
            attachment = MineAttachment.from_upload(upload, mine=mine)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Mine attachment uploaded. Mine ID: {pk}, File: {attachment.filename}, "
            f"Size: {attachment.size}, By: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        return Response(MineAttachmentSerializer(attachment).data, status=status.HTTP_201_CREATED)


class MineAttachmentMetadataView(APIView):
    """
    PATCH /api/mines/<id>/attachments/

    Append metadata of documents stored elsewhere.
    Request body: {"attachments": [{"filename": ..., "url": ..., "mimetype": ..., "size": ...}]}
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk, *args, **kwargs):
        mine = Mine.objects.filter(pk=pk).first()
        if mine is None:
            return not_found('mine')

        if not authorize(request.user, 'mine.attach', mine):
            return forbidden()

        items = request.data.get('attachments')
        if not isinstance(items, list):
            return error_response('"attachments" must be an array.')

        serializer = AttachmentMetadataSerializer(data=items, many=True)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            with transaction.atomic():
                for item in serializer.validated_data:
                    MineAttachment.objects.create(mine=mine, **item)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(f"Mine attachments appended. Mine ID: {pk}, Count: {len(items)}")
        return Response(MineSerializer(mine_queryset().get(pk=pk)).data)


class MineMediaView(APIView):
    """
    PATCH /api/mines/<id>/media/

    Append media URLs. Request body: {"media": ["https://...", ...]}
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk, *args, **kwargs):
        media = request.data.get('media')
        if not isinstance(media, list) or not all(isinstance(url, str) and url for url in media):
            return error_response('"media" must be an array of URLs.')

        with transaction.atomic():
            mine = Mine.objects.select_for_update().filter(pk=pk).first()
            if mine is None:
                return not_found('mine')

            if not authorize(request.user, 'mine.update', mine):
                return forbidden()

            mine.media = [*mine.media, *media]
            mine.save()

        return Response(MineSerializer(mine_queryset().get(pk=pk)).data)


class MinesByOwnerView(APIView):
    """GET /api/mines/owner/<owner_id>/ (public)"""
    permission_classes = [AllowAny]

    def get(self, request, owner_id, *args, **kwargs):
        queryset = mine_queryset().filter(owner_id=owner_id)
        return Response(MineSerializer(queryset, many=True).data)


class MineSearchView(APIView):
    """
    GET /api/mines/search/<query>/ (public)

    Case-insensitive substring match over name and location.
    """
    permission_classes = [AllowAny]

    def get(self, request, query, *args, **kwargs):
        query = query.strip()
        if not query:
            return error_response('Search query cannot be empty.')
        queryset = mine_queryset().filter(
            Q(name__icontains=query) | Q(location__icontains=query)
        )
        return Response(MineSerializer(queryset, many=True).data)


# ============================================================================
# Minerals
# ============================================================================

MINERAL_SORT_FIELDS = {
    'name', 'mineral_type', 'price_per_unit', 'currency', 'available_quantity',
    'created_at', 'last_updated_at',
}
DEFAULT_MINERAL_LIMIT = 100


def mineral_queryset():
    return Mineral.objects.active().select_related('created_by').prefetch_related('attachments')


def limit_fields(data, fields):
    """Keep only the requested keys (plus id) of serialized records."""
    if not fields:
        return data
    wanted = {field.strip() for field in fields.split(',') if field.strip()} | {'id'}
    return [{key: value for key, value in item.items() if key in wanted} for item in data]


class MineralListCreateView(ClientIPMixin, APIView):
    """
    API endpoint for listing and creating mineral listings.

    GET /api/minerals/ (public)
    Query Parameters:
    - mineral_type: metallic, non-metallic, precious, industrial, energy, gemstone
    - currency: ISO code
    - min_price / max_price: Range on price_per_unit
    - sort: Comma separated fields, "-" prefix for descending (default: -created_at)
    - fields: Comma separated fields to return
    - page / limit: Pagination (default limit 100)

    Success response (200):
    {"status": "success", "results": 2, "data": {"minerals": [...]}}

    POST /api/minerals/ (admin, mineral_manager, mineral_owner)
    JSON or multipart/form-data with at most one PDF.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, *args, **kwargs):
        params = request.query_params
        queryset = mineral_queryset()

        mineral_type = params.get('mineral_type')
        if mineral_type:
            queryset = queryset.filter(mineral_type=mineral_type.lower())

        currency = params.get('currency')
        if currency:
            queryset = queryset.filter(currency__iexact=currency)

        try:
            min_price = parse_decimal(params, 'min_price', minimum=0)
            max_price = parse_decimal(params, 'max_price', minimum=0)
            page = parse_int(params, 'page', default=1)
            limit = parse_int(params, 'limit', default=DEFAULT_MINERAL_LIMIT)
        except QueryParamError as e:
            return error_response(str(e))

        if min_price is not None:
            queryset = queryset.filter(price_per_unit__gte=min_price)
        if max_price is not None:
            queryset = queryset.filter(price_per_unit__lte=max_price)

        # ================================================================
        # Sorting
        # ================================================================
        sort = params.get('sort')
        if sort:
            ordering = []
            for field in (part.strip() for part in sort.split(',')):
                if not field:
                    continue
                if field.lstrip('-') not in MINERAL_SORT_FIELDS:
                    return error_response(
                        f'Invalid sort field "{field}". Valid options: '
                        f'{", ".join(sorted(MINERAL_SORT_FIELDS))}'
                    )
                ordering.append(field)
            queryset = queryset.order_by(*ordering, '-id')
        else:
            queryset = queryset.order_by('-created_at', '-id')

        # ================================================================
        # Pagination
        # ================================================================
        paginator = Paginator(queryset, limit)
        if page > paginator.num_pages:
            minerals = []
        else:
            minerals = list(paginator.page(page).object_list)

        data = limit_fields(MineralSerializer(minerals, many=True).data, params.get('fields'))
        return success({'minerals': data}, results=len(data))

    def post(self, request, *args, **kwargs):
        if not authorize(request.user, 'mineral.create'):
            logger.warning(
                f"Mineral creation denied. User: {request.user.email}, Role: {request.user.role}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden()

        serializer = MineralSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            upload = single_upload(request)
            with transaction.atomic():
                mineral = serializer.save(created_by=request.user)
                if upload is not None:
                    MineralAttachment.from_upload(upload, mineral=mineral)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Mineral created. Mineral ID: {mineral.id}, Name: {mineral.name}, "
            f"By: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        mineral = mineral_queryset().get(pk=mineral.pk)
        return success({'mineral': MineralSerializer(mineral).data}, status.HTTP_201_CREATED)


class MineralDetailView(ClientIPMixin, APIView):
    """
    GET/PATCH/PUT/DELETE /api/minerals/<id>/

    Deletion is an administrator-only soft delete; soft deleted minerals are
    invisible to every read.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        mineral = mineral_queryset().filter(pk=pk).first()
        if mineral is None:
            return not_found('mineral')
        return success({'mineral': MineralSerializer(mineral).data})

    def patch(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=True)

    def put(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=False)

    def _update(self, request, pk, partial):
        mineral = mineral_queryset().filter(pk=pk).first()
        if mineral is None:
            return not_found('mineral')

        if not authorize(request.user, 'mineral.update', mineral):
            return forbidden()

        serializer = MineralSerializer(mineral, data=request.data, partial=partial)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            upload = single_upload(request)
            with transaction.atomic():
                serializer.save()
                if upload is not None:
                    MineralAttachment.from_upload(upload, mineral=mineral)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(f"Mineral updated. Mineral ID: {pk}, By: {request.user.email}")
        return success({'mineral': MineralSerializer(mineral_queryset().get(pk=pk)).data})

    def delete(self, request, pk, *args, **kwargs):
        mineral = mineral_queryset().filter(pk=pk).first()
        if mineral is None:
            return not_found('mineral')

        if not authorize(request.user, 'mineral.delete', mineral):
            return forbidden()

        mineral.is_active = False
        mineral.save(update_fields=['is_active', 'last_updated_at'])

        logger.info(
            f"Mineral soft deleted. Mineral ID: {pk}, By: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class MineralStatsView(APIView):
    """
    GET /api/minerals/stats/

    Per mineral_type: count, average/min/max price per unit and total
    available quantity, sorted by average price ascending.
    """
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        stats = (
            Mineral.objects.active()
            .order_by()
            .values('mineral_type')
            .annotate(
                num_minerals=Count('id'),
                avg_price=Avg('price_per_unit'),
                min_price=Min('price_per_unit'),
                max_price=Max('price_per_unit'),
                total_quantity=Sum('available_quantity'),
            )
            .order_by('avg_price', 'mineral_type')
        )
        return success({'stats': [
            {
                'mineral_type': row['mineral_type'],
                'num_minerals': row['num_minerals'],
                'avg_price': float(row['avg_price']) if row['avg_price'] is not None else None,
                'min_price': row['min_price'],
                'max_price': row['max_price'],
                'total_quantity': row['total_quantity'] or 0,
            }
            for row in stats
        ]})


class MineralsWithinView(APIView):
    """
    GET /api/minerals/within/<distance>/center/<lat,lng>/unit/<km|mi>/

    Minerals whose coordinates lie within ``distance`` of the centre on a
    spherical earth.
    """
    permission_classes = [AllowAny]

    def get(self, request, distance, latlng, unit, *args, **kwargs):
        try:
            lat_text, lng_text = latlng.split(',')
            lat, lng = float(lat_text), float(lng_text)
        except ValueError:
            return error_response('Please provide latitude and longitude in the format lat,lng.')

        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return error_response('Latitude must be within ±90 and longitude within ±180.')

        try:
            distance = float(distance)
        except ValueError:
            return error_response('Distance must be a number.')
        if distance < 0:
            return error_response('Distance cannot be negative.')

        if unit not in ('km', 'mi'):
            return error_response('Unit must be "km" or "mi".')

        # Angular radius on the sphere, as a fraction of the earth radius
        radius = distance / (EARTH_RADIUS_MI if unit == 'mi' else EARTH_RADIUS_KM)

        minerals = [
            mineral
            for mineral in mineral_queryset().filter(latitude__isnull=False, longitude__isnull=False)
            if mineral.distance_km_to(lat, lng) / EARTH_RADIUS_KM <= radius
        ]
        data = MineralSerializer(minerals, many=True).data
        return success({'minerals': data}, results=len(data))


class MineralDocumentUploadView(ClientIPMixin, APIView):
    """
    POST /api/minerals/<id>/documents/

    Upload exactly one PDF to a mineral listing.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        mineral = mineral_queryset().filter(pk=pk).first()
        if mineral is None:
            return not_found('mineral')

        if not authorize(request.user, 'mineral.update', mineral):
            return forbidden()

        try:
            upload = single_upload(request)
            if upload is None:
                return error_response('PDF file is required.')
            attachment = MineralAttachment.from_upload(upload, mineral=mineral)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Mineral document uploaded. Mineral ID: {pk}, File: {attachment.filename}, "
            f"By: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        mineral = mineral_queryset().get(pk=pk)
        return success({'mineral': MineralSerializer(mineral).data})


# ============================================================================
# Heavy machines
# ============================================================================

def machine_queryset():
    return HeavyMachine.objects.active().select_related('owner', 'created_by').prefetch_related(
        'rentals', 'purchases', 'maintenance_history'
    )


def machine_payload(machine_id):
    """Fresh machine with its sub-records in append order."""
    return {'machine': HeavyMachineSerializer(machine_queryset().get(pk=machine_id)).data}


class HeavyMachineListCreateView(ClientIPMixin, APIView):
    """
    API endpoint for listing and creating heavy machines.

    GET /api/heavy-machines/ (public)
    Query Parameters:
    - category: Machine category (case-insensitive)
    - status: available, rented, sold, maintenance, reserved
    - brand: Exact brand
    - available_for_rent: "true" restricts to available machines
    - q: Case-insensitive text over name, model and brand

    Success response (200):
    {"status": "success", "results": 3, "data": {"machines": [...]}}

    POST /api/heavy-machines/ (admin, mineral_manager)
    The caller is recorded as creator and defaults as owner. New machines
    always start as "available".
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, *args, **kwargs):
        params = request.query_params
        queryset = machine_queryset()

        category = params.get('category')
        if category:
            queryset = queryset.filter(category=category.strip().lower())

        machine_status = params.get('status')
        if machine_status:
            queryset = queryset.filter(status=machine_status.strip().lower())

        brand = params.get('brand')
        if brand:
            queryset = queryset.filter(brand=brand)

        try:
            available_for_rent = parse_bool(params, 'available_for_rent')
        except QueryParamError as e:
            return error_response(str(e))
        if available_for_rent:
            queryset = queryset.filter(status=HeavyMachine.STATUS_AVAILABLE)

        q = params.get('q')
        if q:
            queryset = queryset.filter(
                Q(name__icontains=q) | Q(model_name__icontains=q) | Q(brand__icontains=q)
            )

        machines = HeavyMachineSerializer(queryset.order_by('-created_at', '-id'), many=True).data
        return success({'machines': machines}, results=len(machines))

    def post(self, request, *args, **kwargs):
        if not authorize(request.user, 'machine.create'):
            logger.warning(
                f"Machine creation denied. User: {request.user.email}, Role: {request.user.role}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden()

        serializer = HeavyMachineSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            machine = serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Machine created. Machine ID: {machine.id}, Name: {machine.name}, "
            f"By: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        return success(machine_payload(machine.pk), status.HTTP_201_CREATED)


class HeavyMachineDetailView(ClientIPMixin, APIView):
    """
    GET/PATCH/DELETE /api/heavy-machines/<id>/

    Updates never change the status; use the lifecycle endpoints. Deletion is
    an administrator-only soft delete.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        machine = machine_queryset().filter(pk=pk).first()
        if machine is None:
            return not_found('machine')
        return success({'machine': HeavyMachineSerializer(machine).data})

    def patch(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=True)

    def put(self, request, pk, *args, **kwargs):
        return self._update(request, pk, partial=False)

    def _update(self, request, pk, partial):
        machine = HeavyMachine.objects.active().filter(pk=pk).first()
        if machine is None:
            return not_found('machine')

        if not authorize(request.user, 'machine.update', machine):
            return forbidden()

        serializer = HeavyMachineSerializer(
            machine, data=request.data, partial=partial, context={'request': request}
        )
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(f"Machine updated. Machine ID: {pk}, By: {request.user.email}")
        return success(machine_payload(pk))

    def delete(self, request, pk, *args, **kwargs):
        machine = HeavyMachine.objects.active().filter(pk=pk).first()
        if machine is None:
            return not_found('machine')

        if not authorize(request.user, 'machine.delete', machine):
            return forbidden()

        machine.is_active = False
        machine.save(update_fields=['is_active', 'last_updated_at'])

        logger.info(
            f"Machine soft deleted. Machine ID: {pk}, By: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class MachineActionView(ClientIPMixin, APIView):
    """
    Base class for machine lifecycle endpoints.

    Subclasses set ``action`` (the capability checked with ``authorize``)
    and implement ``perform(request, machine)``, returning the HTTP status of
    the success response. Lifecycle errors raised by the model map to 409,
    other validation errors to 400.
    """
    permission_classes = [IsAuthenticated]
    action = None
    label = None
    success_status = status.HTTP_200_OK

    def get_machine(self, pk):
        return HeavyMachine.objects.active().filter(pk=pk).first()

    def handle_action(self, request, pk, **kwargs):
        label = self.label or self.action
        machine = self.get_machine(pk)
        if machine is None:
            return not_found('machine')

        if self.action is not None and not authorize(request.user, self.action, machine):
            logger.warning(
                f"Machine {label} denied. Machine ID: {pk}, User: {request.user.email}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden()

        try:
            response = self.perform(request, machine, **kwargs)
        except InvalidStateError as e:
            logger.warning(
                f"Machine {label} rejected. Machine ID: {pk}, Reason: {error_message(e)}, "
                f"User: {request.user.email}"
            )
            return domain_error(e)
        except DjangoValidationError as e:
            return domain_error(e)

        if response is not None:
            return response

        logger.info(
            f"Machine {label} completed. Machine ID: {pk}, Status: {machine.status}, "
            f"User: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        return success(machine_payload(pk), self.success_status)

    def perform(self, request, machine, **kwargs):
        raise NotImplementedError


class MachineRentView(MachineActionView):
    """
    POST /api/heavy-machines/<id>/rent/

    Request body (all optional): {"start_date", "end_date", "price_per_day", "notes"}
    The caller is the renter. Fails with 409 unless the machine is available.
    """
    action = 'machine.rent'
    success_status = status.HTTP_201_CREATED

    def post(self, request, pk, *args, **kwargs):
        return self.handle_action(request, pk)

    def perform(self, request, machine):
        serializer = RentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        machine.rent(request.user, **serializer.validated_data)


class MachineReturnView(MachineActionView):
    """
    POST /api/heavy-machines/<id>/return/<rental_id>/

    Marks the rental returned and recomputes the machine status. Allowed for
    the renter, the machine owner or an administrator.
    """
    label = 'machine.return'

    def post(self, request, pk, rental_id, *args, **kwargs):
        return self.handle_action(request, pk, rental_id=rental_id)

    def perform(self, request, machine, rental_id):
        rental = machine.rentals.select_related('machine').filter(pk=rental_id).first()
        if rental is None:
            return error_response('Rental record not found', status.HTTP_404_NOT_FOUND)

        if not authorize(request.user, 'machine.return', rental):
            return forbidden()

        try:
            machine.return_rental(rental_id)
        except MachineRental.DoesNotExist:
            return error_response('Rental record not found', status.HTTP_404_NOT_FOUND)


class MachineSellView(MachineActionView):
    """
    POST /api/heavy-machines/<id>/sell/

    Request body: {"price": "1500000.00", "buyer": 7, "date": ..., "notes": ...}
    The buyer defaults to the caller. Fails with 409 when already sold;
    outstanding rentals are left as they are.
    """
    action = 'machine.sell'
    success_status = status.HTTP_201_CREATED

    def post(self, request, pk, *args, **kwargs):
        return self.handle_action(request, pk)

    def perform(self, request, machine):
        serializer = SellRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        data = dict(serializer.validated_data)
        buyer = data.pop('buyer', None) or request.user
        machine.sell(buyer, **data)


class MachineMaintenanceView(MachineActionView):
    """
    POST /api/heavy-machines/<id>/maintenance/

    Request body: {"title", "description", "cost", "performed_at",
                   "performed_by", "set_status"?}
    The status changes only when set_status is given.
    """
    action = 'machine.maintenance'
    success_status = status.HTTP_201_CREATED

    def post(self, request, pk, *args, **kwargs):
        return self.handle_action(request, pk)

    def perform(self, request, machine):
        serializer = MaintenanceRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        data = dict(serializer.validated_data)
        new_status = data.pop('set_status', None)
        machine.log_maintenance(new_status=new_status, **data)


class MachineStatusView(MachineActionView):
    """
    PATCH /api/heavy-machines/<id>/status/

    Administrative override: {"status": "maintenance"}. No lifecycle guard
    applies; only the value is validated.
    """
    action = 'machine.set_status'

    def patch(self, request, pk, *args, **kwargs):
        return self.handle_action(request, pk)

    def perform(self, request, machine):
        serializer = StatusRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)
        machine.set_status(serializer.validated_data['status'])


# ============================================================================
# Offers
# ============================================================================

def offer_queryset():
    return Offer.objects.select_related('mine', 'mine__owner', 'investor')


def offer_list_response(queryset):
    return Response(OfferSerializer(queryset.order_by('created_at', 'id'), many=True).data)


class OfferListCreateView(ClientIPMixin, APIView):
    """
    API endpoint for listing and submitting offers.

    GET /api/offers/?mine=<id>&investor=<id>&status=Pending
    Administrators see every offer; other users see the offers they made and
    the offers on mines they own. Ordered by creation time, oldest first.

    POST /api/offers/
    Request body: {"mine": 3, "amount": "250000.00", "message": "..."}
    The caller is the investor and must have the investor role.

    Error responses:
    - 400: Amount not greater than 0, unknown mine, or caller not an investor
    - 401: Missing or invalid token
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        queryset = offer_queryset()
        if not request.user.is_admin():
            queryset = queryset.filter(Q(investor=request.user) | Q(mine__owner=request.user))

        params = request.query_params
        for param in ('mine', 'investor'):
            value = params.get(param)
            if value:
                if not value.isdigit():
                    return error_response(f'Invalid value for "{param}". Must be an id.')
                queryset = queryset.filter(**{f'{param}_id': int(value)})

        offer_status = params.get('status')
        if offer_status:
            if offer_status not in dict(Offer.STATUS_CHOICES):
                return error_response(f'Invalid value for "status": {offer_status}.')
            queryset = queryset.filter(status=offer_status)

        return offer_list_response(queryset)

    def post(self, request, *args, **kwargs):
        if not authorize(request.user, 'offer.submit'):
            logger.warning(
                f"Offer submission by non-investor. User: {request.user.email}, "
                f"Role: {request.user.role}, IP: {self.get_client_ip(request)}"
            )
            return error_response('Investor does not exist or is not an investor.')

        serializer = OfferCreateSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            offer = serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Offer submitted. Offer ID: {offer.id}, Mine ID: {offer.mine_id}, "
            f"Amount: {offer.amount}, Investor: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(OfferSerializer(offer_queryset().get(pk=offer.pk)).data,
                        status=status.HTTP_201_CREATED)


class OfferDetailView(ClientIPMixin, APIView):
    """
    GET/PUT/PATCH/DELETE /api/offers/<id>/

    - GET: investor, mine owner or administrator
    - PUT/PATCH: the investor, while the offer is pending (amount, message)
    - DELETE: the investor or an administrator
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        offer = offer_queryset().filter(pk=pk).first()
        if offer is None:
            return not_found('offer')
        if not authorize(request.user, 'offer.view', offer):
            return forbidden()
        return Response(OfferSerializer(offer).data)

    def put(self, request, pk, *args, **kwargs):
        return self._update(request, pk)

    def patch(self, request, pk, *args, **kwargs):
        return self._update(request, pk)

    def _update(self, request, pk):
        offer = offer_queryset().filter(pk=pk).first()
        if offer is None:
            return not_found('offer')
        if not authorize(request.user, 'offer.update', offer):
            return forbidden()

        if not offer.is_pending():
            return error_response(
                f'Only pending offers can be edited. This offer is {offer.status.lower()}.',
                status.HTTP_409_CONFLICT
            )

        serializer = OfferUpdateSerializer(offer, data=request.data, partial=True)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(f"Offer updated. Offer ID: {pk}, Investor: {request.user.email}")
        return Response(OfferSerializer(offer_queryset().get(pk=pk)).data)

    def delete(self, request, pk, *args, **kwargs):
        offer = offer_queryset().filter(pk=pk).first()
        if offer is None:
            return not_found('offer')
        if not authorize(request.user, 'offer.delete', offer):
            return forbidden()

        offer.delete()
        logger.info(
            f"Offer deleted. Offer ID: {pk}, By: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response({'message': 'Offer deleted successfully'})


class OfferDecisionView(ClientIPMixin, APIView):
    """
    Base class for accepting or rejecting an offer.

    Only the mine owner or an administrator decides. Deciding an offer that
    is no longer pending fails with 409 and changes nothing.
    """
    permission_classes = [IsAuthenticated]
    decision = None

    def patch(self, request, pk, *args, **kwargs):
        offer = offer_queryset().filter(pk=pk).first()
        if offer is None:
            return not_found('offer')

        if not authorize(request.user, 'offer.decide', offer):
            logger.warning(
                f"Unauthorized offer {self.decision} attempt. Offer ID: {pk}, "
                f"User: {request.user.email}, IP: {self.get_client_ip(request)}"
            )
            return forbidden('Only the mine owner can decide on this offer.')

        try:
            detail = self.decide(offer)
        except InvalidStateError as e:
            logger.warning(
                f"Offer {self.decision} conflict. Offer ID: {pk}, Status: {offer.status}, "
                f"User: {request.user.email}"
            )
            return domain_error(e)
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Offer {self.decision}. Offer ID: {pk}, Mine ID: {offer.mine_id}, {detail}"
            f"By: {request.user.email}, IP: {self.get_client_ip(request)}"
        )
        return Response(OfferSerializer(offer_queryset().get(pk=pk)).data)

    def post(self, request, pk, *args, **kwargs):
        return self.patch(request, pk, *args, **kwargs)

    def decide(self, offer):
        raise NotImplementedError


class OfferAcceptView(OfferDecisionView):
    """
    PATCH /api/offers/<id>/accept/

    Accepts the offer and rejects every other pending offer on the same mine
    in one transaction. Ownership of the mine is not transferred.
    """
    decision = 'accepted'

    def decide(self, offer):
        rejected = offer.accept()
        return f"Competing offers rejected: {rejected}, "


class OfferRejectView(OfferDecisionView):
    """PATCH /api/offers/<id>/reject/"""
    decision = 'rejected'

    def decide(self, offer):
        offer.reject()
        return ''


class MyOffersView(APIView):
    """GET /api/offers/my/ - offers made by the caller."""
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return offer_list_response(offer_queryset().filter(investor=request.user))


class MineOffersView(APIView):
    """GET /api/offers/mine/<mine_id>/ - mine owner or administrator."""
    permission_classes = [IsAuthenticated]

    def get(self, request, mine_id, *args, **kwargs):
        mine = Mine.objects.filter(pk=mine_id).first()
        if mine is None:
            return not_found('mine')
        if not authorize(request.user, 'offers.for_mine', mine):
            return forbidden()
        return offer_list_response(offer_queryset().filter(mine=mine))


class MineOwnerOffersView(APIView):
    """GET /api/offers/mine-owner/<owner_id>/ - offers on every mine of an owner."""
    permission_classes = [IsAuthenticated]

    def get(self, request, owner_id, *args, **kwargs):
        owner = User.objects.filter(pk=owner_id).first()
        if owner is None:
            return not_found('user')
        if not authorize(request.user, 'offers.for_owner', owner):
            return forbidden()
        return offer_list_response(offer_queryset().filter(mine__owner=owner))


class InvestorOffersView(APIView):
    """GET /api/offers/investor/<investor_id>/ - the investor or an administrator."""
    permission_classes = [IsAuthenticated]

    def get(self, request, investor_id, *args, **kwargs):
        investor = User.objects.filter(pk=investor_id).first()
        if investor is None:
            return not_found('user')
        if not authorize(request.user, 'offers.for_investor', investor):
            return forbidden()
        return offer_list_response(offer_queryset().filter(investor=investor))


# ============================================================================
# Messages
# ============================================================================

def message_queryset():
    return Message.objects.select_related('sender', 'receiver', 'mine')


class MessageListCreateView(ClientIPMixin, APIView):
    """
    GET /api/messages/ - the caller's inbox and sent messages, oldest first.
    Query Parameters:
    - unseen: "true" restricts to unseen received messages

    POST /api/messages/
    Request body: {"receiver": 5, "content": "...", "mine": 3}
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        try:
            unseen = parse_bool(request.query_params, 'unseen')
        except QueryParamError as e:
            return error_response(str(e))

        if unseen:
            queryset = message_queryset().filter(receiver=request.user, seen=False)
        else:
            queryset = message_queryset().filter(
                Q(sender=request.user) | Q(receiver=request.user)
            )
        return Response(MessageSerializer(queryset.order_by('created_at', 'id'), many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = MessageSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            message = serializer.save()
        except DjangoValidationError as e:
            return domain_error(e)

        logger.info(
            f"Message sent. Message ID: {message.id}, From: {request.user.pk}, "
            f"To: {message.receiver_id}, Mine: {message.mine_id}, IP: {self.get_client_ip(request)}"
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class ConversationView(APIView):
    """GET /api/messages/thread/<user_id>/ - both directions, oldest first."""
    permission_classes = [IsAuthenticated]

    def get(self, request, user_id, *args, **kwargs):
        if not User.objects.filter(pk=user_id).exists():
            return not_found('user')

        queryset = message_queryset().filter(
            Q(sender=request.user, receiver_id=user_id)
            | Q(sender_id=user_id, receiver=request.user)
        ).order_by('created_at', 'id')
        return Response(MessageSerializer(queryset, many=True).data)


class MineMessagesView(APIView):
    """
    GET /api/messages/mine/<mine_id>/

    The mine owner and administrators see every message about the mine;
    other users only the ones they sent or received.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, mine_id, *args, **kwargs):
        mine = Mine.objects.filter(pk=mine_id).first()
        if mine is None:
            return not_found('mine')

        queryset = message_queryset().filter(mine=mine)
        if not (mine.owner_id == request.user.pk or request.user.is_admin()):
            queryset = queryset.filter(Q(sender=request.user) | Q(receiver=request.user))

        return Response(MessageSerializer(queryset.order_by('created_at', 'id'), many=True).data)


class MessageSeenView(APIView):
    """PATCH /api/messages/<id>/seen/ - receiver only."""
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk, *args, **kwargs):
        message = message_queryset().filter(pk=pk).first()
        if message is None:
            return not_found('message')
        if message.receiver_id != request.user.pk:
            return forbidden('Only the receiver can mark a message as seen.')

        if not message.seen:
            message.seen = True
            message.save(update_fields=['seen', 'updated_at'])
        return Response(MessageSerializer(message).data)


# ============================================================================
# Analytics
# ============================================================================

class UserAnalyticsView(APIView):
    """
    GET /api/analytics/user/

    Response:
    {
        "total_listings": 2,
        "total_offers_made": 0,
        "offer_stats": [{"mine_id": 1, "mine": "Witbank Colliery", "offers": 3}, ...]
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        listings = (
            Mine.objects.filter(owner=request.user)
            .annotate(offer_count=Count('offers'))
            .order_by('created_at', 'id')
        )
        return Response({
            'total_listings': listings.count(),
            'total_offers_made': Offer.objects.filter(investor=request.user).count(),
            'offer_stats': [
                {'mine_id': mine.id, 'mine': mine.name, 'offers': mine.offer_count}
                for mine in listings
            ],
        })


class AdminAnalyticsView(ClientIPMixin, APIView):
    """
    GET /api/analytics/admin/ (administrators only)

    Response:
    {
        "total_users": 42,
        "mine_status_breakdown": [{"status": "Active", "count": 5}, ...],
        "popular_commodities": [{"commodity_type": "Gold", "count": 7}, ...],
        "offer_status_breakdown": [{"status": "Pending", "count": 9}, ...]
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        if not authorize(request.user, 'analytics.admin'):
            logger.warning(
                f"Admin analytics denied. User: {request.user.email}, "
                f"IP: {self.get_client_ip(request)}"
            )
            return forbidden('Access denied')

        mine_status = (
            Mine.objects.order_by().values('status').annotate(count=Count('id')).order_by('status')
        )
        popular = (
            Mine.objects.order_by().values('commodity_type')
            .annotate(count=Count('id'))
            .order_by('-count', 'commodity_type')[:5]
        )
        offer_status = (
            Offer.objects.order_by().values('status').annotate(count=Count('id')).order_by('status')
        )

        return Response({
            'total_users': User.objects.count(),
            'mine_status_breakdown': list(mine_status),
            'popular_commodities': list(popular),
            'offer_status_breakdown': list(offer_status),
        })


# ============================================================================
# Payments
# ============================================================================

class PaymentIntentView(ClientIPMixin, APIView):
    """
    POST /api/payments/create-intent/

    Request body: {"amount": 250000, "currency": "zar"}
    The amount is an integer in the smallest currency unit.

    Success response (200): {"client_secret": "pi_..._secret_..."}

    Error responses:
    - 400: Amount missing or not a positive integer
    - 502: Stripe rejected the request
    - 503: Payments are not configured
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = PaymentIntentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_input(serializer.errors)

        try:
            client_secret = create_payment_intent(
                request.user,
                serializer.validated_data['amount'],
                serializer.validated_data.get('currency'),
            )
        except PaymentsNotConfigured as e:
            logger.error(f"Payment intent requested but payments are not configured. User: {request.user.pk}")
            return error_response(str(e), status.HTTP_503_SERVICE_UNAVAILABLE)
        except PaymentProviderError as e:
            return error_response(str(e), status.HTTP_502_BAD_GATEWAY)

        logger.info(
            f"Payment intent issued. User: {request.user.pk}, "
            f"Amount: {serializer.validated_data['amount']}, IP: {self.get_client_ip(request)}"
        )
        return Response({'client_secret': client_secret})
