"""inkpress static site content pipeline.

This package turns front-matter annotated Markdown documents into immutable,
rendered Page records for an external layout engine to consume.

Pipeline stages, each a pure transformation over immutable inputs:
- loader: reads a file and splits front matter from body.
- frontmatter: parses the front matter block into a FrontMatter record.
- renderers: renders the Markdown body, resolving reference-style links.
- content: assembles the FrontMatter and rendered body into a Page.

The build module runs a batch of documents with per-document failure
isolation, and the cli module exposes it on the command line.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
