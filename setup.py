from setuptools import setup, find_packages

setup(
    name="apparel-storefront",
    version="0.1.0",
    packages=find_packages(include=["storefront", "storefront.*", "orders", "orders.*"]),
    include_package_data=True,
    install_requires=[
        "Django>=5.1",
        "djangorestframework>=3.14",
        "stripe>=8.0",
        "python-dotenv>=1.0",
        "django-cors-headers>=4.0",
        "whitenoise>=6.5",
        "django-anymail>=10.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-django>=4.5",
        ],
    },
    author="Wayne",
    author_email="support@techwithwayne.com",
    description="Order lifecycle, Stripe payments and production tracking for a B2B custom apparel storefront.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    url="https://techwithwayne.com",
    license="MIT",
    classifiers=[
        "Framework :: Django",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: MIT License"
    ],
    python_requires=">=3.10",
)
