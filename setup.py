import re

from setuptools import find_packages, setup


with open("mep/__init__.py", "rb") as fh:
    init_text = fh.read().decode()
    VERSION = re.search(r"__version__ = \"(.*?)\"", init_text).group(1)

setup(
    name="mep",
    version=VERSION,
    packages=find_packages(
        exclude=["tests", "tests.*", "examples", "examples.*"]
    ),
    python_requires=">=3.8.0",
    install_requires=["grapheme"],
    extras_require={"tests": ["pytest"]},
    license="MIT",
    description="A toolkit for interactive terminal prompts, with incremental rendering and mouse support.",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    zip_safe=True,
    entry_points={
        "console_scripts": [
            "mep = mep:cli",
        ],
    },
)
