"""Constants for the PingSource Operator."""

# API Group
API_GROUP = "sources.knative.dev"
API_VERSION = "v1alpha2"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"
PLURAL_PING_SOURCES = "pingsources"

# Resource Kinds
KIND_PING_SOURCE = "PingSource"
KIND_SERVICE_ACCOUNT = "ServiceAccount"
KIND_ROLE_BINDING = "RoleBinding"
KIND_DEPLOYMENT = "Deployment"

# Component names
CONTROLLER_NAME = "pingsource-controller"
COMPONENT = "pingsource"
MT_ADAPTER_NAME = "pingsource-mt-adapter"
ST_ADAPTER_CLUSTER_ROLE_NAME = "knative-eventing-pingsource-adapter"
ADAPTER_CONTAINER_NAME = "receive-adapter"
METRICS_DOMAIN = "knative.dev/eventing"
METRICS_PORT_NAME = "metrics"
METRICS_PORT = 9090

# Observability ConfigMaps
CONFIGMAP_LOGGING = "config-logging"
CONFIGMAP_OBSERVABILITY = "config-observability"
CONFIGMAP_EXAMPLE_KEY = "_example"

# Labels
LABEL_SOURCE = "eventing.knative.dev/source"
LABEL_SOURCE_NAME = "eventing.knative.dev/sourceName"
LABEL_SOURCE_ROLE = "sources.knative.dev/role"
SOURCE_CONTROLLER_AGENT = "ping-source-controller"

# Annotations
ANNOTATION_SCOPE = "eventing.knative.dev/scope"
ANNOTATION_RESYNC = f"{API_GROUP}/resync"

# Scopes
SCOPE_CLUSTER = "cluster"
SCOPE_RESOURCE = "resource"

# CloudEvent attributes
PING_SOURCE_EVENT_TYPE = "dev.knative.sources.ping"

# Condition Types
COND_READY = "Ready"
COND_SINK_PROVIDED = "SinkProvided"
COND_VALID_SCHEDULE = "ValidSchedule"
COND_DEPLOYED = "Deployed"

# Event Reasons
EVENT_REASON_DEPLOYMENT_CREATED = "PingSourceDeploymentCreated"
EVENT_REASON_DEPLOYMENT_UPDATED = "PingSourceDeploymentUpdated"
EVENT_REASON_DEPLOYMENT_DELETED = "PingSourceDeploymentDeleted"
EVENT_REASON_SERVICE_ACCOUNT_CREATED = "PingSourceServiceAccountCreated"
EVENT_REASON_ROLE_BINDING_CREATED = "PingSourceRoleBindingCreated"
EVENT_REASON_SINK_NOT_FOUND = "SinkNotFound"
EVENT_REASON_SERVICE_ACCOUNT_FAILED = "PingSourceServiceAccountFailed"
EVENT_REASON_ROLE_BINDING_FAILED = "PingSourceRoleBindingFailed"
EVENT_REASON_DEPLOYMENT_FAILED = "PingSourceDeploymentFailed"
EVENT_REASON_OWNERSHIP_CONFLICT = "PingSourceOwnershipConflict"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
