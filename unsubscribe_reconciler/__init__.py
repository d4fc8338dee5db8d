"""Unsubscribe reconciliation package.

Having this file ensures the package is recognized as a standard Python
package during test discovery and installation. High-level exports live in
the submodules (``services.reconciliation_engine``, ``handler``, ``main``).
"""

__all__: list[str] = []
