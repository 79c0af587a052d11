from setuptools import find_packages, setup

setup(
    name="colloclab",
    version="0.1.0",
    description="Direct-collocation transcription of optimal control problems into NLPs",
    author="colloclab Authors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.18.0",
        "scipy>=1.4.0",  # Legendre-Gauss-Radau nodes
        "casadi>=3.5.0",  # CasADi is used for the optimization backend
        "pandas>=1.0.0",  # Used for data export
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="optimal control, trajectory optimization, direct collocation, hermite-simpson",
)
