"""Reserved label and annotation keys stamped onto assembled resources."""

# Application identity
LABEL_APP_NAME = "app.oam.dev/name"
LABEL_APP_REVISION = "app.oam.dev/appRevision"
LABEL_APP_REVISION_HASH = "app.oam.dev/app-revision-hash"

# Component identity
LABEL_APP_COMPONENT = "app.oam.dev/component"
LABEL_APP_COMPONENT_REVISION = "app.oam.dev/revision"

# Definition type tags
WORKLOAD_TYPE_LABEL = "workload.oam.dev/type"
TRAIT_TYPE_LABEL = "trait.oam.dev/type"

# Resource role
LABEL_RESOURCE_ROLE = "app.oam.dev/resourceType"
ROLE_WORKLOAD = "workload"
ROLE_TRAIT = "trait"
ROLE_POLICY = "policy"

# The single annotation slot the assembler owns on every resource.
ANNOTATION_APP_CONTEXT = "app.oam.dev/app-context"

# Handoff annotation on workflow step target objects.
ANNOTATION_WORKFLOW_CONTEXT = "app.oam.dev/workflow-context"

# Helm provenance
ANNOTATION_HELM_RELEASE_NAME = "meta.helm.sh/release-name"
ANNOTATION_HELM_RELEASE_NAMESPACE = "meta.helm.sh/release-namespace"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
HELM_MANAGER = "Helm"

# Application kind, used for owner references.
APPLICATION_API_VERSION = "core.oam.dev/v1beta1"
APPLICATION_KIND = "Application"
APPLICATION_REVISION_KIND = "ApplicationRevision"

# Condition types
CONDITION_WORKFLOW_FINISH = "workflow-finish"
CONDITION_ASSEMBLED = "Assembled"
CONDITION_WORKFLOW_FINISHED = "WorkflowFinished"
