"""
Pydantic schemas for authentication endpoints.

These schemas define the request contracts for signup, login and the
password flows. Pydantic validates the shape of incoming data; if a required
field is missing or the wrong type, FastAPI returns a 422 before our code
runs. Record-level rules (e.g. password confirmation) are checked in
auth_service and answered with 400.
"""

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/users/signup."""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirm: str


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login."""
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/users/forgot-password."""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/users/reset-password/{token}."""
    password: str = Field(min_length=8)
    password_confirm: str


class UpdatePasswordRequest(BaseModel):
    """Request body for PATCH /api/v1/users/update-my-password."""
    password_current: str
    password: str = Field(min_length=8)
    password_confirm: str
