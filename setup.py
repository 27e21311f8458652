from setuptools import setup


def parse_reqs_file(fname):
    with open(fname) as fid:  # noqa:PTH123
        lines = [li.strip() for li in fid.readlines()]
    return [li for li in lines if li and not li.startswith("#")]


extras_require = dict(  # noqa:C408
    test=parse_reqs_file("requirements/test-requirements.txt"),
)

setup(
    name="mcollection",
    version="0.1.0",
    description="Asynchronous collection interface for MongoDB",
    license="Apache License, Version 2.0",
    python_requires=">=3.8",
    packages=["mcollection", "mcollection.frameworks"],
    install_requires=parse_reqs_file("requirements.txt"),
    extras_require=extras_require,
)
