from setuptools import setup, find_packages

setup(
    name="mkdocs-swiftdoc",
    version="0.3.0",
    description="MkDocs plugin for Swift API documentation from SourceKitten output",
    keywords="mkdocs swift sourcekitten documentation python",
    packages=find_packages(exclude=["tests"]),
    install_requires=[
        "mkdocs>=1.6",
        "Markdown>=3.3",
        "Pygments>=2.12",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "swiftdoc = mkdocs_swiftdoc.plugin:SwiftdocPlugin",
        ],
    },
)
