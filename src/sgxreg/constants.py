# Service settings
DEFAULT_REGISTRATION_INTERVAL_MINUTES = 60
REGISTRATION_INTERVAL_MINUTES_ENV = "CC_IPR_REGISTRATION_INTERVAL_MINUTES"

DEFAULT_SERVICE_PORT = 8080
SERVICE_PORT_ENV = "CC_IPR_REGISTRATION_SERVICE_PORT"

LOG_LEVEL_ENV = "CC_IPR_LOG_LEVEL"
CONFIG_FILE_ENV = "CC_IPR_CONFIG_FILE"
PLATFORM_PROVIDER_ENV = "CC_IPR_PLATFORM_PROVIDER"

# PCCS configuration
PCCS_URLS_ENV = "CC_PCCS_URLS"
PCCS_CA_CERT_PATH_ENV = "CC_PCCS_CA_CERT_PATH"  # directory of custom CA certificates
PCCS_PCK_RETRIEVAL_PATH = "/sgx/certification/v4/pckcerts"
CA_CERT_SUFFIXES = (".crt", ".pem")

# Intel endpoints (always the last fallback, never configurable)
INTEL_PLATFORM_REGISTRATION_ENDPOINT = "https://api.trustedservices.intel.com/sgx/registration/v1/platform"
INTEL_PCK_RETRIEVAL_ENDPOINT = "https://api.trustedservices.intel.com/sgx/certification/v4/pckcert"
INTEL_REQUEST_TIMEOUT_SEC = 120.0

# Connection pool
MAX_CONNECTIONS = 10
MAX_KEEPALIVE_CONNECTIONS = 2
KEEPALIVE_EXPIRY_SEC = 90.0

ERROR_CODE_HEADER = "Error-Code"
