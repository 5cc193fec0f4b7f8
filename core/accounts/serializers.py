from rest_framework import serializers
from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.validators import UnicodeUsernameValidator
from django.core.exceptions import ValidationError as DjangoValidationError
from users.serializers import UserSerializer


def _validate_new_password(password, user=None):
    try:
        validate_password(password, user)
    except DjangoValidationError as exc:
        raise serializers.ValidationError(list(exc.messages))


class AuthTokenSerializer(serializers.Serializer):
    """
    Response serializer for successful authentication.
    Bundles the token with user data for frontend bootstrapping.
    """

    status = serializers.CharField()
    message = serializers.CharField()
    token = serializers.CharField(help_text="JWT access token")
    data = serializers.DictField(child=UserSerializer(read_only=True))


class MessageSerializer(serializers.Serializer):
    status = serializers.CharField()
    message = serializers.CharField()


class SignupSerializer(serializers.Serializer):
    """
    Request serializer for signup.
    The password confirmation and strength rules are enforced before any
    account is written.
    """

    username = serializers.CharField(
        max_length=150, validators=[UnicodeUsernameValidator()]
    )
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    passwordConfirm = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, data):
        if data["password"] != data["passwordConfirm"]:
            raise serializers.ValidationError(
                {"passwordConfirm": "Passwords are not the same!"}
            )

        # Similarity checks need the would-be user's attributes
        candidate = User(username=data["username"], email=data["email"])
        try:
            _validate_new_password(data["password"], candidate)
        except serializers.ValidationError as exc:
            raise serializers.ValidationError({"password": exc.detail})
        return data


class OTPVerifySerializer(serializers.Serializer):
    """Serializer for verifying the signup OTP."""
    otp = serializers.CharField(required=True, max_length=6)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class ForgotPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class ResetPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField(max_length=6)
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    passwordConfirm = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, data):
        if data["password"] != data["passwordConfirm"]:
            raise serializers.ValidationError(
                {"passwordConfirm": "Passwords are not the same!"}
            )
        try:
            _validate_new_password(data["password"])
        except serializers.ValidationError as exc:
            raise serializers.ValidationError({"password": exc.detail})
        return data


class ChangePasswordSerializer(serializers.Serializer):
    """
    Only shape is checked here; the current password, the confirmation and
    the strength rules are checked by AccountService.change_password.
    """

    currentPassword = serializers.CharField(write_only=True, trim_whitespace=False)
    newPassword = serializers.CharField(write_only=True, trim_whitespace=False)
    newPasswordConfirm = serializers.CharField(write_only=True, trim_whitespace=False)
