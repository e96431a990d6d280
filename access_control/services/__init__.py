"""Business logic: matching, access policy and orchestration."""
