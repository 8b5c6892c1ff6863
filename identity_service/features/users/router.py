from fastapi import APIRouter, Depends, Query, Request, status
from identity_service.features.users.schemas import (
    AuthData,
    AuthResponse,
    CompleteProfileRequest,
    LoginRequest,
    MessageResponse,
    ProfileData,
    ProfileResponse,
    RegisterData,
    RegisterRequest,
    RegisterResponse,
    ResendOtpData,
    ResendOtpRequest,
    ResendOtpResponse,
    UpdateProfileRequest,
    UserListData,
    UserListResponse,
    UserResponse,
    VerifyOtpData,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from identity_service.features.users.dependencies import (
    enforce_rate_limit,
    get_current_user,
    get_user_service,
    require_admin,
)
from identity_service.features.users.models import Identity, classify_identifier
from identity_service.features.users.service import UserService


router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    service: UserService = Depends(get_user_service),
):
    """
    Step 1: start registration with an email address or phone number.

    - **emailOrPhone**: Email address or phone number
    - **password**: At least 6 chars with a lowercase letter, an uppercase letter and a digit
    - **confirmPassword**: Must equal password
    - **referralCode**: Optional referral code
    """
    user, contact_method = await service.register(payload)

    return RegisterResponse(
        message=f"Registration initiated. OTP sent to {payload.email_or_phone}",
        data=RegisterData(user_id=user.id, contact_method=contact_method),
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(
    payload: VerifyOtpRequest,
    service: UserService = Depends(get_user_service),
):
    """
    Step 2: verify the 6-digit code sent to the email address or phone number.
    """
    user = await service.verify_otp(payload)

    return VerifyOtpResponse(
        message="OTP verified successfully",
        data=VerifyOtpData(user_id=user.id),
    )


@router.post("/resend-otp", response_model=ResendOtpResponse)
async def resend_otp(
    payload: ResendOtpRequest,
    request: Request,
    service: UserService = Depends(get_user_service),
):
    """
    Issue a new code. Earlier codes stop working.

    Limited per email address or phone number.
    """
    _, identifier = classify_identifier(payload.email_or_phone)
    enforce_rate_limit(
        request.app.state.otp_limiter,
        f"otp:{identifier}",
        "Too many OTP requests. Please wait before requesting another.",
    )
    await service.resend_otp(payload)

    return ResendOtpResponse(
        message=f"New OTP sent to {payload.email_or_phone}",
        data=ResendOtpData(),
    )


@router.post("/complete-profile", response_model=AuthResponse)
async def complete_profile(
    payload: CompleteProfileRequest,
    service: UserService = Depends(get_user_service),
):
    """
    Step 3: add personal information, accept the terms and receive a token.
    """
    user, token = await service.complete_profile(payload)

    return AuthResponse(
        message="Profile completed successfully",
        data=AuthData(user=UserResponse.from_identity(user), token=token),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    service: UserService = Depends(get_user_service),
):
    """
    Authenticate with email address or phone number and password.
    """
    user, token = await service.login(payload)

    return AuthResponse(
        message="Login successful",
        data=AuthData(user=UserResponse.from_identity(user), token=token),
    )


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: Identity = Depends(get_current_user)):
    """
    Get the authenticated user's profile.

    Requires authentication.
    """
    return ProfileResponse(data=ProfileData(user=UserResponse.from_identity(current_user)))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: UpdateProfileRequest,
    current_user: Identity = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """
    Update the authenticated user's profile.

    Requires authentication. Password, id, role and verification status
    cannot be changed here.
    """
    user = await service.update_profile(current_user, payload)

    return ProfileResponse(
        message="Profile updated successfully",
        data=ProfileData(user=UserResponse.from_identity(user)),
    )


@router.get("/", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: Identity = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    """
    List users, newest first.

    Requires admin role.
    """
    users, pagination = await service.list_users(page, limit)

    return UserListResponse(
        data=UserListData(
            users=[UserResponse.from_identity(user) for user in users],
            pagination=pagination,
        ),
    )


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    admin: Identity = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    """
    Delete a user.

    Requires admin role.
    """
    await service.delete_user(user_id)

    return MessageResponse(message="User deleted successfully")
