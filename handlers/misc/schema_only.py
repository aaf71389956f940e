body = {"email": pydantic.EmailStr};
