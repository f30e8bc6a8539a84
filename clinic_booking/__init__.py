# Clinic booking API package
