from rest_framework import status, serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from drf_spectacular.utils import extend_schema, OpenApiResponse

from .serializers import SignupSerializer, LoginSerializer, UserSerializer
from .services import register_user, authenticate_user


# Response serializer for API documentation
class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()
    code = serializers.CharField()
    status = serializers.IntegerField()


def _with_access_token(response: Response, user) -> Response:
    """Attach a fresh access token as ``Authorization: Bearer <token>``."""
    access = RefreshToken.for_user(user).access_token
    response['Authorization'] = f'Bearer {access}'
    return response


@extend_schema(
    request=SignupSerializer,
    responses={
        201: OpenApiResponse(UserSerializer, description='Access token in the Authorization header'),
        400: ErrorResponseSerializer,
    },
    description="Create an account and receive an access token.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def signup(request):
    """Register a new user account."""
    serializer = SignupSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = register_user(**serializer.validated_data)

    response = Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
    return _with_access_token(response, user)


@extend_schema(
    request=LoginSerializer,
    responses={
        200: OpenApiResponse(UserSerializer, description='Access token in the Authorization header'),
        400: ErrorResponseSerializer,
        401: ErrorResponseSerializer,
    },
    description="Authenticate with email and password to receive an access token.",
    tags=['auth'],
)
@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """Login with email and password."""
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    user = authenticate_user(**serializer.validated_data)

    return _with_access_token(Response(UserSerializer(user).data), user)


@extend_schema(
    responses={200: UserSerializer, 401: ErrorResponseSerializer},
    description="Get the current authenticated user.",
    tags=['auth'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    """Get current authenticated user profile."""
    return Response(UserSerializer(request.user).data)
