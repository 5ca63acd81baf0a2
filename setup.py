from setuptools import setup, find_packages

setup(
    name="mig-partitioner",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "numpy>=1.21.0",
        "pynvml>=11.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    author="Erfan Darzi",
    description="MIG partition layouts: enumeration and order-searching apply for NVIDIA GPUs",
    python_requires=">=3.8",
)
