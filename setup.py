#!/usr/bin/env python
"""AnxMeta setup script."""
import importlib.util
import os.path as op

from setuptools import find_packages, setup


def main():
    """Install entry-point."""
    curdir = op.dirname(op.realpath(__file__))
    info_spec = importlib.util.spec_from_file_location("info", op.join(curdir, "anxmeta", "info.py"))
    info = importlib.util.module_from_spec(info_spec)
    info_spec.loader.exec_module(info)

    with open(op.join(curdir, "README.md"), encoding="utf-8") as f:
        longdesc = f.read()

    setup(
        name=info.PACKAGENAME,
        version=info.__version__,
        description=info.DESCRIPTION,
        long_description=longdesc,
        long_description_content_type="text/markdown",
        author=info.AUTHOR,
        license=info.LICENSE,
        classifiers=info.CLASSIFIERS,
        python_requires=">=3.8",
        install_requires=info.REQUIRES,
        extras_require=info.EXTRA_REQUIRES,
        packages=find_packages(exclude=["examples"]),
        zip_safe=False,
    )


if __name__ == "__main__":
    main()
