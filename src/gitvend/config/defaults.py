"""Starter .gitvend.toml and vendor.yml templates."""

DEFAULT_TOML = """\
# gitvend settings
version = "1.0"

[paths]
config = ".git-vendor/vendor.yml"
lockfile = ".git-vendor/vendor.lock"

[conflicts]
fail_on_conflict = false  # exit 1 when two mappings write overlapping output

[drift]
offline = false           # skip the upstream fetch, report local drift only
workers = 4               # dependencies evaluated in parallel
detail = false            # include a line diff for modified files

[output]
format = "terminal"       # terminal | json
show_summary = true
"""

MANIFEST_TEMPLATE = """\
# Vendored dependencies. Paths may carry a position suffix:
#   file.go:L5   file.go:L5-L20   file.go:L10-EOF   file.go:L5C10:L5C30
vendors: []
#  - name: example
#    url: https://github.com/example/project
#    license: MIT
#    groups: [backend]
#    specs:
#      - ref: main
#        mapping:
#          - from: src/utils.go
#            to: lib/example/utils.go
#          - from: src/api.go:L5-L20
#            to: lib/example/api_snippet.go
#          - from: docs
#            to: lib/example/docs
#            exclude: ["**/*.png"]
"""
