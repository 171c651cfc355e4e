"""Identity-service integration exports."""

from .token_service import ClientCredentialsTokenService, build_token_service  # noqa: F401
from .user_service_client import (  # noqa: F401
    AccessTokenProvider,
    BasicUser,
    Membership,
    MembershipCounterUpdate,
    UserProfile,
    UserServiceClient,
    WalletPass,
)
