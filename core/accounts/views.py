from drf_spectacular.utils import extend_schema
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .throttles import AuthRateThrottle, OTPRateThrottle, SensitiveOperationThrottle

from users.serializers import UserSerializer
from .serializers import (
    AuthTokenSerializer,
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    LoginSerializer,
    MessageSerializer,
    OTPVerifySerializer,
    ResetPasswordSerializer,
    SignupSerializer,
)
from .services import AccountService


def _set_auth_cookie(response, token: str):
    response.set_cookie(
        settings.JWT_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.JWT_COOKIE_SECURE,
        samesite=settings.JWT_COOKIE_SAMESITE,
        max_age=settings.JWT_ACCESS_TOKEN_LIFETIME,
        path="/",
    )


def _clear_auth_cookie(response):
    response.delete_cookie(
        settings.JWT_COOKIE_NAME,
        path="/",
        samesite=settings.JWT_COOKIE_SAMESITE,
    )


def _auth_success_response(request, user, token, message):
    # Token goes in the body for header-based clients and in a cookie for browsers
    payload = {
        "status": "success",
        "message": message,
        "token": token,
        "data": {"user": UserSerializer(user, context={"request": request}).data},
    }
    response = Response(payload, status=status.HTTP_200_OK)
    _set_auth_cookie(response, token)
    return response


def _message_response(message, status_code=status.HTTP_200_OK):
    return Response({"status": "success", "message": message}, status=status_code)


class SignupView(APIView):
    """
    Register a new, unverified account and email it a verification OTP.
    Accepts: { "username", "email", "password", "passwordConfirm" }
    """

    permission_classes = [AllowAny]
    throttle_classes = [AuthRateThrottle]
    serializer_class = SignupSerializer

    @extend_schema(request=SignupSerializer, responses={200: AuthTokenSerializer})
    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user, result = AccountService.signup(
            username=data["username"],
            email=data["email"],
            password=data["password"],
        )
        if not user:
            return result.as_response()

        return _auth_success_response(
            request,
            user,
            result,
            "Registration successful. Check your email for OTP verification.",
        )


class VerifyAccountView(APIView):
    """
    Verify the signed-up email with the OTP sent to it.
    Accepts: { "otp": "123456" }
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [SensitiveOperationThrottle]
    serializer_class = OTPVerifySerializer

    @extend_schema(request=OTPVerifySerializer, responses={200: AuthTokenSerializer})
    def post(self, request):
        # Missing OTP is reported by the service with its own message
        user, result = AccountService.verify_account(
            request.user, request.data.get("otp")
        )
        if not user:
            return result.as_response()

        return _auth_success_response(request, user, result, "Email has been verified.")


class ResendOTPView(APIView):
    """Send a fresh verification OTP to the current, unverified account."""

    permission_classes = [IsAuthenticated]
    throttle_classes = [OTPRateThrottle]

    @extend_schema(request=None, responses={200: MessageSerializer})
    def post(self, request):
        user, error = AccountService.resend_otp(request.user)
        if not user:
            return error.as_response()

        return _message_response("A new OTP has been sent to your email.")


class LoginView(APIView):
    """
    Log in with email and password.
    Accepts: { "email", "password" }
    """

    permission_classes = [AllowAny]
    throttle_classes = [AuthRateThrottle]
    serializer_class = LoginSerializer

    @extend_schema(request=LoginSerializer, responses={200: AuthTokenSerializer})
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, result = AccountService.login(
            serializer.validated_data["email"],
            serializer.validated_data["password"],
        )
        if not user:
            return result.as_response()

        return _auth_success_response(request, user, result, "Login Successful")


class LogoutView(APIView):
    """Logout the user by clearing the token cookie."""

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        request=None,
        responses={200: MessageSerializer},
        description="Clears the token cookie. Tokens stay valid until they expire.",
    )
    def post(self, request):
        # In a stateless JWT system, logout is handled client-side
        # We clear the auth cookie as well.
        response = _message_response("Logged out successfully.")
        _clear_auth_cookie(response)
        return response


class ForgotPasswordView(APIView):
    """
    Email a password reset OTP (valid for 5 minutes).
    Accepts: { "email" }
    """

    permission_classes = [AllowAny]
    throttle_classes = [OTPRateThrottle]
    serializer_class = ForgotPasswordSerializer

    @extend_schema(request=ForgotPasswordSerializer, responses={200: MessageSerializer})
    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, error = AccountService.forgot_password(serializer.validated_data["email"])
        if not user:
            return error.as_response()

        return _message_response("Password Reset OTP sent to your email")


class ResetPasswordView(APIView):
    """
    Set a new password using the emailed reset OTP.
    Accepts: { "email", "otp", "password", "passwordConfirm" }
    """

    permission_classes = [AllowAny]
    throttle_classes = [SensitiveOperationThrottle]
    serializer_class = ResetPasswordSerializer

    @extend_schema(request=ResetPasswordSerializer, responses={200: AuthTokenSerializer})
    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user, result = AccountService.reset_password(
            data["email"], data["otp"], data["password"]
        )
        if not user:
            return result.as_response()

        return _auth_success_response(request, user, result, "Password Reset Successful")


class ChangePasswordView(APIView):
    """
    Change the password of the current account.
    Accepts: { "currentPassword", "newPassword", "newPasswordConfirm" }
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [SensitiveOperationThrottle]
    serializer_class = ChangePasswordSerializer

    @extend_schema(request=ChangePasswordSerializer, responses={200: AuthTokenSerializer})
    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user, result = AccountService.change_password(
            request.user,
            data["currentPassword"],
            data["newPassword"],
            data["newPasswordConfirm"],
        )
        if not user:
            return result.as_response()

        return _auth_success_response(
            request, user, result, "Password changed successfully"
        )
