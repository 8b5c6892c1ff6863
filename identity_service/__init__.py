"""Identity service - OTP registration, profile completion and JWT sessions."""
