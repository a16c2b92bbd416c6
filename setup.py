from setuptools import setup, find_packages


setup(
    name="stackvault",
    version="0.1",
    packages=find_packages(include=["stackvault", "stackvault.*"]),
    description="A personal LIFO vault: push files into a plain or encrypted archive, pop them back out.",
    author="vercingetorx",
    python_requires=">=3.10.12",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "argon2-cffi>=23.1.0",
    ],
    entry_points={
        "console_scripts": [
            "stackvault=stackvault.cli:main",
        ]
    },
)
