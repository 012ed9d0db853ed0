from setuptools import find_packages, setup

setup(
    name="extant-sampler",
    version="0.1.0",
    description="Prune a species tree down to its most recent (deepest) leaves.",
    author="Your Name",
    license="MIT",
    packages=find_packages(include=["extant_sampler", "extant_sampler.*"]),
    install_requires=[],
    extras_require={
        "test": [
            "pytest",
            "ete3",
            "six",
            "numpy",
        ],
    },
    entry_points={
        "console_scripts": [
            "extant_sampler=extant_sampler.main:cli_entry",
        ]
    },
    python_requires=">=3.8",
    include_package_data=True,
)
