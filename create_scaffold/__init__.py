"""create-scaffold: project scaffolding from git-hosted templates.

The pipeline resolves a template identifier to a local directory (through the
repository cache), copies it into a fresh project directory, applies user
selections and placeholders, and runs the template's setup script inside a
restricted sandbox.
"""

__version__ = "0.4.0"
