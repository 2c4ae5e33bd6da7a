"""
API request and response models for Tradepost REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

AccountResponse is built only from PublicAccount, so there is no code path
through which a password hash or reset ticket can reach a response body.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from auth.models import PublicAccount
from auth.passwords import MAX_PASSWORD_BYTES
from catalog.models import Product

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,6}[)]?[-\s.]?[0-9]{1,10}$"
ID_PATTERN = r"^[0-9a-f]{32}$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class GenderEnum(str, Enum):
    male = "male"
    female = "female"
    other = "other"
    empty = ""


# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return value


def _check_dob(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError("Date of birth cannot be in the future.")
    return value


class _ProfileFields(BaseModel):
    """Optional profile fields shared by registration and profile update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    gender: Optional[GenderEnum] = None
    dob: Optional[date] = Field(default=None, description="Date of birth (ISO 8601).")
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN, max_length=30)

    @field_validator("dob")
    @classmethod
    def dob_not_in_future(cls, value: Optional[date]) -> Optional[date]:
        return _check_dob(value)

    def profile_changes(self) -> dict:
        """Return only the fields the client actually sent, in store form."""
        changes = self.model_dump(exclude_unset=True, include=set(_ProfileFields.model_fields))
        if "gender" in changes:
            changes["gender"] = changes["gender"].value if changes["gender"] is not None else ""
        if "dob" in changes:
            changes["dob"] = changes["dob"].isoformat() if changes["dob"] is not None else None
        return changes


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


# Clients may send either spelling.
_CONFIRM_PASSWORD = AliasChoices("confirm_password", "confirmPassword")


class RegisterRequest(_ProfileFields):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    confirm_password: str = Field(min_length=1, max_length=255, validation_alias=_CONFIRM_PASSWORD)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match.")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/forgot-password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password."""

    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=255)
    confirm_password: str = Field(min_length=1, max_length=255, validation_alias=_CONFIRM_PASSWORD)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match.")
        return self


class AccountUpdate(_ProfileFields):
    """Request body for PUT /api/v1/users. Every field is optional."""

    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)


# ---------------------------------------------------------------------------
# Auth response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an account. Built only from PublicAccount."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    gender: str
    dob: Optional[str]
    phone: Optional[str]
    is_active: bool
    last_login_at: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_public(cls, account: PublicAccount) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            first_name=account.first_name,
            last_name=account.last_name,
            gender=account.gender,
            dob=account.dob,
            phone=account.phone,
            is_active=account.is_active,
            last_login_at=account.last_login_at,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class AuthResponse(BaseModel):
    """Response for register and login: the account plus a bearer token."""

    model_config = ConfigDict(frozen=True)

    user: AccountResponse
    token: str
    token_type: str = "bearer"


class ForgotPasswordResponse(BaseModel):
    """Response for POST /auth/forgot-password.

    The shape is identical whether or not the email is registered; only
    reset_token differs (null for unknown emails).
    """

    model_config = ConfigDict(frozen=True)

    message: str
    reset_token: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Product models
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/v1/products."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=2048)


class ProductUpdate(BaseModel):
    """Request body for PUT /api/v1/products/{id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=2048)

    def changes(self) -> dict:
        """Fields the client sent with a non-null value."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class ProductResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: Optional[str]
    price: float
    stock: int
    image_url: Optional[str]
    owner_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        """Factory Method: the mapping lives here, colocated with the output model."""
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            stock=product.stock,
            image_url=product.image_url,
            owner_id=product.owner_id,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )


class ProductPageResponse(BaseModel):
    """Response for GET /api/v1/products."""

    model_config = ConfigDict(frozen=True)

    products: list[ProductResponse]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Envelope and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
