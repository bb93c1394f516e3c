"""Names shared by the conda environment packager."""

# Layer into which the conda environment is installed.
CONDA_ENV_LAYER = "conda-env"

# Layer used as the conda package directory.
CONDA_ENV_CACHE = "conda-env-cache"

# Build plan requirement this packager provides.
CONDA_ENV_PLAN_ENTRY = "conda-environment"

# Build plan requirement for the conda installation this packager needs.
CONDA_PLAN_ENTRY = "conda"

# Layer metadata key deciding whether a layer can be reused.
LOCKFILE_SHA_NAME = "lockfile-sha"

# Exported package list from which packages are reinstalled.
LOCKFILE_NAME = "package-list.txt"

# Conda environment description file.
ENVIRONMENT_FILE_NAME = "environment.yml"