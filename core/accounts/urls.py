from django.urls import path
from .views import (
    SignupView,
    VerifyAccountView,
    ResendOTPView,
    LoginView,
    LogoutView,
    ForgotPasswordView,
    ResetPasswordView,
    ChangePasswordView,
)

urlpatterns = [
    # Signup and email verification
    path("signup", SignupView.as_view(), name="signup"),
    path("verify", VerifyAccountView.as_view(), name="verify_account"),
    path("resend-otp", ResendOTPView.as_view(), name="resend_otp"),

    # Session
    path("login", LoginView.as_view(), name="login"),
    path("logout", LogoutView.as_view(), name="logout"),

    # Password management
    path("forget-password", ForgotPasswordView.as_view(), name="forget_password"),
    path("reset-password", ResetPasswordView.as_view(), name="reset_password"),
    path("change-password", ChangePasswordView.as_view(), name="change_password"),
]
