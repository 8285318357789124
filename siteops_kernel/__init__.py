"""
Site Operations Kernel

Organizational access control and financial approval for construction-site
management:
- Scope resolution over the org-unit hierarchy
- Role-based permission checks
- Threshold-based approval levels
- Versioned multi-step approval chains with compare-and-swap persistence
"""

__version__ = "0.1.0"
