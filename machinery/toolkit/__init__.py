# ============================================================================
# machinery/toolkit/__init__.py
# Toolkit Package - docker, docker-compose and docker-machine integration
# ============================================================================
#
# KEY MODULES:
# - tools.py: the closed set of tools and their flag table
# - registry.py: cached version and subcommand discovery
# - translator.py: stream/structured-log to severity classification
# - versions.py: version extraction and comparison
# - runtime.py: executable resolution and the startup runtime check
# - tooling.py: docker/compose/machine façades and help-output parsers
#
# ============================================================================
