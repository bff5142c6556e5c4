"""
flatfile – import, clean, and export flat-file tabular data.

Readers and writers live in flatfile.data.io (delimited) and
flatfile.data.fixed_width; column-name cleanup in flatfile.utils.names.
"""
