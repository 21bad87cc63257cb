"""Normalizer passes, one per storage-format element class.

Applied in this order by the Normalizer: emoticons, images, links,
macros, task lists, ADF extensions, residual tags.
"""
