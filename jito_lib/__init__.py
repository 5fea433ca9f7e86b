from .bundle_sender import BundleRelay, BundleResult, BundleSender

__all__ = [
    'BundleRelay',
    'BundleResult',
    'BundleSender',
]
