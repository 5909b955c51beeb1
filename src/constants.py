"""Constants used across the operator."""

# Label stamped on every dependent resource the operator creates
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "starburst-addon-operator"

# Watched custom resource
ADDON_GROUP = "addon.redhat.com"
ADDON_VERSION = "v1alpha1"
ADDON_PLURAL = "addons"

# Keys read from externally provided secrets
PARAMETERS_LICENSE_KEY = "starburst-license"
LICENSE_SECRET_KEY = "starburstdata.license"
INTEGRATION_TOKEN_URL_KEY = "token-url"
INTEGRATION_REMOTE_WRITE_URL_KEY = "remote-write-url"
INTEGRATION_CLIENT_ID_KEY = "client-id"
INTEGRATION_CLIENT_SECRET_KEY = "client-secret"
