"""Asset build pipeline and Lighthouse quality gate for a static website."""

__version__ = "0.1.0"
